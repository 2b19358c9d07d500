"""Output formatters for mismatch reports."""

import json
import logging
from typing import Any, Dict, List, Optional, Sequence

from packageurl import PackageURL

from . import __version__
from .models import LocationAncestry, MismatchReport, ModuleRef

logger = logging.getLogger(__name__)


class OutputFormatter:
    """Formatter for mismatch reports."""

    @staticmethod
    def format_ancestry(loc: Optional[LocationAncestry]) -> str:
        """Render an ancestry chain, one go.mod per entry, nearest first."""
        if loc is None:
            return ""

        lines = []
        for node in loc.full_chain():
            line = (
                f"\t\toriginally included in modfile for module {node.owning_module} "
                f"line {node.declared_at.row}, col {node.declared_at.col}"
            )
            if node.overridden_at is not None:
                line += (
                    f"\n\t\t\treplaced at line {node.overridden_at.row}, "
                    f"col {node.overridden_at.col}"
                )
            lines.append(line)

        return '\n'.join(lines) + '\n'

    @staticmethod
    def format_report(report: MismatchReport) -> str:
        """Format a single mismatch for humans."""
        got_loc = report.got_ancestry
        pos = got_loc.effective_position()

        msg = (
            f"Module mismatch: in modfile for module {got_loc.owning_module} "
            f"line {pos.row}, col {pos.col}: "
            f"have version {report.got_version} but want version {report.want_version}\n"
        )
        msg += "\tgot version:\n" + OutputFormatter.format_ancestry(report.got_ancestry)
        msg += "\twant version:\n" + OutputFormatter.format_ancestry(report.want_ancestry)
        return msg

    @staticmethod
    def format_as_text(reports: Sequence[MismatchReport]) -> str:
        return ''.join(OutputFormatter.format_report(r) for r in reports)

    @staticmethod
    def format_as_json(reports: Sequence[MismatchReport]) -> str:
        """Format mismatches as a JSON document."""
        doc = {
            'tool': {'name': 'gomodcheck', 'version': __version__},
            'mismatchCount': len(reports),
            'mismatches': [OutputFormatter._report_to_dict(r) for r in reports],
        }
        return json.dumps(doc, indent=2) + '\n'

    @staticmethod
    def _report_to_dict(report: MismatchReport) -> Dict[str, Any]:
        return {
            'module': report.module_path,
            'want': {
                'version': report.want_version,
                'purl': OutputFormatter._build_purl(report.want_module),
                'ancestry': OutputFormatter._ancestry_to_list(report.want_ancestry),
            },
            'got': {
                'version': report.got_version,
                'purl': OutputFormatter._build_purl(report.got_module),
                'ancestry': OutputFormatter._ancestry_to_list(report.got_ancestry),
            },
        }

    @staticmethod
    def _ancestry_to_list(loc: Optional[LocationAncestry]) -> List[Dict[str, Any]]:
        if loc is None:
            return []

        res = []
        for node in loc.full_chain():
            entry: Dict[str, Any] = {
                'module': node.owning_module,
                'declared': {'line': node.declared_at.row, 'col': node.declared_at.col},
            }
            if node.overridden_at is not None:
                entry['overridden'] = {'line': node.overridden_at.row, 'col': node.overridden_at.col}
            res.append(entry)
        return res

    @staticmethod
    def _build_purl(module: Optional[ModuleRef]) -> Optional[str]:
        """Build a Package URL (purl) string for a Go module."""
        if module is None:
            return None

        # Directory replacements are not published modules.
        if not module.version:
            return None

        namespace, _, name = module.path.rpartition('/')
        purl = PackageURL(
            type='golang',
            namespace=namespace or None,
            name=name,
            version=module.version,
        )
        return purl.to_string()
