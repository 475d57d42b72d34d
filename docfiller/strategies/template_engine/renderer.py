"""Template renderer strategy.

Renders a placeholder template with docxtpl. Each template part (body,
headers, footers) is first normalized (dotted table rows become explicit
loops) and compiled into docxtpl's Jinja2 dialect, then the rebuilt
package is rendered in one pass.
"""

import io
import logging
from collections.abc import Mapping
from typing import Any

from docxtpl import DocxTemplate
from jinja2 import Environment, TemplateError as JinjaTemplateError
from lxml import etree

from docfiller.interfaces.template import BaseTemplateRenderer, TemplateRenderError
from docfiller.strategies.template_engine.compiler import TemplateCompiler, scope_var
from docfiller.strategies.template_engine.loop_normalizer import (
    LoopNormalizer,
    parse_xml,
    serialize_xml,
)
from docfiller.strategies.template_engine.package import DocxPackage
from docfiller.strategies.template_engine.scope import iter_section, render_value

logger = logging.getLogger(__name__)


def build_environment() -> Environment:
    """Create the Jinja2 environment used for rendering.

    Comment delimiters are moved out of the way so text like ``{#1}`` in a
    document is never read as a Jinja2 comment.
    """
    env = Environment(
        autoescape=True,
        comment_start_string="{#!",
        comment_end_string="!#}",
    )
    env.globals["value"] = render_value
    env.globals["section"] = iter_section
    return env


class TemplateRenderer(BaseTemplateRenderer):
    """Renders DOCX placeholder templates with docxtpl."""

    def __init__(
        self,
        normalizer: LoopNormalizer | None = None,
        compiler: TemplateCompiler | None = None,
    ) -> None:
        self._normalizer = normalizer or LoopNormalizer()
        self._compiler = compiler or TemplateCompiler()

    def prepare(self, template: bytes) -> bytes:
        """Normalize and compile every template part.

        Returns:
            A DOCX package in docxtpl syntax, ready to render.

        Raises:
            TemplateRenderError: If the package or its tags are malformed.
            UnsupportedTemplateError: If a table row mixes loop families.
        """
        package = DocxPackage.from_bytes(template)
        for name in package.template_parts():
            xml = package.read_xml(name)
            root = parse_xml(xml)
            converted = self._normalizer.normalize_tree(root)
            compiled = self._compiler.compile_tree(root)
            if converted or compiled:
                package.write_xml(name, serialize_xml(root, xml))
                logger.debug(f"Prepared {name}: {compiled} tags, {converted} rows normalized")
        return package.to_bytes()

    def render(self, template: bytes, data: Mapping[str, Any]) -> bytes:
        """Render a template with the given data.

        Missing keys render as empty text and missing loops render zero
        iterations; they are never an error.

        Raises:
            TemplateRenderError: If the template cannot be rendered.
        """
        prepared = self.prepare(template)
        try:
            document = DocxTemplate(io.BytesIO(prepared))
            document.render({scope_var(0): (dict(data),)}, jinja_env=build_environment(), autoescape=True)
            output = io.BytesIO()
            document.save(output)
        except JinjaTemplateError as e:
            lineno = getattr(e, "lineno", None)
            logger.error(f"Template rendering failed: {e}")
            raise TemplateRenderError(
                f"Template could not be rendered: {e.message or e}",
                {"line": lineno} if lineno is not None else None,
            ) from e
        except etree.XMLSyntaxError as e:
            logger.error(f"Rendered document is not well-formed: {e}")
            raise TemplateRenderError(
                "Rendered document is not well-formed; check that loop tags enclose whole rows or paragraphs",
                {"error": str(e)},
            ) from e

        logger.info(f"Rendered document ({len(data)} top-level keys)")
        return output.getvalue()
