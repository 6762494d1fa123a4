import pytest

from app.errors import TemplateRenderError
from app.services.template_renderer import TemplateRenderer

from tests.conftest import docx_text, make_docx


@pytest.fixture
def renderer():
    return TemplateRenderer()


def test_render_fills_placeholders(tmp_path, renderer):
    template = make_docx(tmp_path / "cert.docx", ["{{ STUDENT_NAME }} completed {{ COURSE_NAME }}"])
    rendered = renderer.render(template, {"STUDENT_NAME": "A. Khan", "COURSE_NAME": "Safeguarding Level 2"})
    assert "A. Khan completed Safeguarding Level 2" in docx_text(rendered)


def test_missing_fields_render_empty(tmp_path, renderer):
    template = make_docx(tmp_path / "cert.docx", ["[{{ STUDENT_NAME }}][{{ NOT_PROVIDED }}][{{ NONE_VALUE }}]"])
    rendered = renderer.render(template, {"STUDENT_NAME": "A. Khan", "NONE_VALUE": None})
    assert "[A. Khan][][]" in docx_text(rendered)


def test_values_are_escaped(tmp_path, renderer):
    template = make_docx(tmp_path / "cert.docx", ["{{ COURSE_NAME }}"])
    rendered = renderer.render(template, {"COURSE_NAME": "Health & Safety <Level 2>"})
    assert "Health & Safety <Level 2>" in docx_text(rendered)


def test_template_is_not_modified(tmp_path, renderer):
    template = make_docx(tmp_path / "cert.docx", ["{{ STUDENT_NAME }}"])
    renderer.render(template, {"STUDENT_NAME": "A. Khan"})
    assert "{{ STUDENT_NAME }}" in docx_text(template)


def test_malformed_placeholder_raises(tmp_path, renderer):
    template = make_docx(tmp_path / "broken.docx", ["{{ STUDENT_NAME "])
    with pytest.raises(TemplateRenderError) as exc_info:
        renderer.render(template, {"STUDENT_NAME": "A. Khan"})
    assert "broken.docx" in exc_info.value.message


def test_not_a_docx_raises(tmp_path, renderer):
    template = tmp_path / "notes.docx"
    template.write_text("plain text")
    with pytest.raises(TemplateRenderError):
        renderer.render(template, {})


def test_single_brace_placeholders_from_older_templates(tmp_path, renderer):
    template = make_docx(tmp_path / "legacy.docx", ["No. {REGISTRATION_NO} issued to {{ STUDENT_NAME }} on { Date }"])
    rendered = renderer.render(
        template, {"REGISTRATION_NO": "REG-00007", "STUDENT_NAME": "A. Khan", "Date": "1st May 2026"}
    )
    assert "No. REG-00007 issued to A. Khan on 1st May 2026" in docx_text(rendered)


def test_unknown_single_brace_placeholder_renders_empty(tmp_path, renderer):
    template = make_docx(tmp_path / "legacy.docx", ["[{UNIT_9_NAME}]"])
    assert "[]" in docx_text(renderer.render(template, {}))
