"""
Template Renderer
Fills .docx templates ({{ FIELD }} or legacy {FIELD} placeholders) from a flat field map
"""

import re
import zipfile
from io import BytesIO
from pathlib import Path
from typing import Mapping, Union

from docx.opc.exceptions import PackageNotFoundError
from docxtpl import DocxTemplate
from jinja2 import Environment, TemplateError

from app.errors import TemplateRenderError
from app.logging_config import get_logger

logger = get_logger(__name__)

# Templates uploaded for the previous generator use {FIELD}; rewritten to {{ FIELD }}.
# Doubled braces and Jinja tags ({%, {#) are left alone.
LEGACY_PLACEHOLDER = re.compile(r"(?<!\{)\{\s*([A-Za-z][A-Za-z0-9_]*)\s*\}(?!\})")


class CertificateDocxTemplate(DocxTemplate):
    """DocxTemplate that also understands single-brace placeholders"""

    def patch_xml(self, src_xml):
        return super().patch_xml(LEGACY_PLACEHOLDER.sub(r"{{ \1 }}", src_xml))


class TemplateRenderer:
    """
    Renders templates with a plain Jinja2 environment, whose default
    Undefined prints as an empty string, so fields missing from the map come
    out blank instead of failing. Values are XML-escaped.
    """

    def __init__(self):
        self.jinja_env = Environment(autoescape=True)

    def render(self, template_path: Union[str, Path], fields: Mapping[str, object]) -> bytes:
        context = {key: "" if value is None else value for key, value in fields.items()}
        try:
            doc = CertificateDocxTemplate(str(template_path))
            doc.render(context, jinja_env=self.jinja_env, autoescape=True)
            buffer = BytesIO()
            doc.save(buffer)
        except TemplateError as e:
            lineno = getattr(e, "lineno", None)
            diagnostic = f"{e.__class__.__name__}: {e.message or e}"
            if lineno is not None:
                diagnostic += f" (line {lineno})"
            logger.error("Template errors in %s: %s", template_path, diagnostic)
            raise TemplateRenderError(str(template_path), diagnostic) from e
        except (PackageNotFoundError, zipfile.BadZipFile, KeyError, OSError) as e:
            raise TemplateRenderError(str(template_path), f"{e.__class__.__name__}: {e}") from e

        return buffer.getvalue()


# Create singleton instance
template_renderer = TemplateRenderer()
