"""Shared test fixtures and sample documents for Markform tests."""

import pytest

from markform.core.parser import parse_form
from markform.utils.config import MarkformSettings, reset_settings


PROFILE_FORM = """\
{% form id="profile" title="Profile" %}

{% field kind="string" id="name" label="Name" required=true %}
{% /field %}

{% field kind="number" id="age" label="Age" required=true min=0 max=120 %}
{% /field %}

{% /form %}
"""

ROSTER_FORM = """\
{% form id="roster" title="Roster" %}

{% field kind="table" id="team" label="Team" columnIds=["name", "role"] columnLabels=["Name", "Role"] minRows=1 maxRows=3 %}
{% /field %}

{% /form %}
"""

COMPANY_FORM = """\
---
title: Company research
markform:
  spec: MF/0.1
  roles:
    - user
    - agent
---

# Company research

Intro prose that is not part of any field.

{% form id="company" title="Company Research" %}

{% description ref="company" %}
Research a company.
{% /description %}

{% group id="overview" title="Overview" %}

{% field kind="string" id="name" label="Company name" required=true %}
```value
Acme Corp
```
{% /field %}

{% instructions ref="name" %}
Use the legal name.
{% /instructions %}

{% field kind="number" id="employees" label="Employees" integer=true min=1 %}
```value
250
```
{% /field %}

{% field kind="string_list" id="products" label="Products" maxItems=5 %}
```value
Rockets
Anvils
```
{% /field %}

{% field kind="url" id="website" label="Website" %}
```value
https://acme.example.com
```
{% /field %}

{% field kind="url_list" id="sources" label="Sources" %}
{% /field %}

{% field kind="date" id="founded" label="Founded" %}
```value
1949-03-01
```
{% /field %}

{% field kind="year" id="ipo_year" label="IPO year" state="skipped" %}
```value
%SKIP% (Company is private)
```
{% /field %}

{% /group %}

{% group id="assessment" title="Assessment" %}

{% field kind="single_select" id="size" label="Size" required=true %}
- [ ] Small {% #small %}
- [x] Medium {% #medium %}
- [ ] Large {% #large %}
{% /field %}

{% field kind="multi_select" id="markets" label="Markets" %}
- [x] North America {% #na %}
- [ ] Europe {% #eu %}
- [x] Asia {% #asia %}
{% /field %}

{% field kind="checkboxes" id="tasks" label="Research tasks" %}
- [x] Read filings {% #filings %}
- [/] Interview staff {% #interviews %}
- [ ] Visit site {% #visit %}
- [-] Audit {% #audit %}
{% /field %}

{% field kind="checkboxes" id="confirm" label="Confirmations" checkboxMode="explicit" %}
- [y] Data verified {% #verified %}
- [ ] Sources cited {% #cited %}
{% /field %}

{% field kind="table" id="execs" label="Executives" columnIds=["name", "title", "since"] columnLabels=["Name", "Title", "Since"] columnTypes=["string", "string", "year"] %}
| Name | Title | Since |
|------|-------|-------|
| Wile E. Coyote | CEO | 1950 |
| Road Runner | CTO \\| CFO | %SKIP% |
{% /field %}

{% /group %}

{% note id="n1" ref="name" role="agent" %}
Confirmed via registry.
{% /note %}

{% /form %}
"""

SURVEY_FORM = """\
<!-- f:form id="survey" title="Survey" -->

<!-- f:field kind="string" id="q1" label="Question one" -->
```value
Yes
```
<!-- /f:field -->

<!-- f:field kind="single_select" id="q2" label="Choice" -->
- [ ] Option A <!-- #a -->
- [x] Option B <!-- #b -->
<!-- /f:field -->

<!-- /f:form -->
"""


@pytest.fixture(autouse=True)
def isolated_settings(monkeypatch):
    """Keep MARKFORM_* variables from the test environment out of settings."""
    for name in ("SPEC_VERSION", "DEFAULT_ROLES", "ROLE_INSTRUCTIONS", "SERIALIZER_MODE", "LOG_LEVEL", "LOG_FORMAT"):
        monkeypatch.delenv(f"MARKFORM_{name}", raising=False)
    reset_settings()
    yield
    reset_settings()


@pytest.fixture
def settings():
    """Default settings."""
    return MarkformSettings()


@pytest.fixture
def profile_text():
    return PROFILE_FORM


@pytest.fixture
def roster_text():
    return ROSTER_FORM


@pytest.fixture
def company_text():
    return COMPANY_FORM


@pytest.fixture
def survey_text():
    return SURVEY_FORM


@pytest.fixture
def profile_form():
    """Two required, unanswered fields placed directly under the form."""
    return parse_form(PROFILE_FORM)


@pytest.fixture
def roster_form():
    """A single table field with 1..3 rows."""
    return parse_form(ROSTER_FORM)


@pytest.fixture
def company_form():
    """A form using every field kind, doc blocks and a note."""
    return parse_form(COMPANY_FORM)


@pytest.fixture
def survey_form():
    """A form written in HTML comment syntax."""
    return parse_form(SURVEY_FORM)
