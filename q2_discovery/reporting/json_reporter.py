"""JSON report generator for discovery cycles.

Generates structured JSON reports from cycle results.
"""

import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional


class JsonReporter:
    """Generates JSON reports from discovery cycle results."""

    def generate(self, result) -> dict[str, Any]:
        """Generate a JSON report from a cycle result.

        Args:
            result: CycleResult of a finished (or cancelled) cycle.

        Returns:
            Report dictionary ready for JSON serialization.
        """
        if result.error:
            status = "failed"
        elif result.cancelled:
            status = "cancelled"
        else:
            status = "completed"

        report = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "status": status,
            "summary": {
                "sources": dict(result.endpoints_by_source),
                "discovered": result.discovered,
                "attempted": result.attempted,
                "responded": result.responded,
                "players": result.total_players,
                "duration_ms": result.duration_ms,
            },
            "servers": [record.to_dict() for record in result.records],
            "error": result.error,
        }

        return report

    def save(self, report: dict[str, Any], path: Path) -> Path:
        """Save report to a JSON file.

        Args:
            report: Report dictionary.
            path: Output file path.

        Returns:
            Path to the saved file.
        """
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)

        with open(path, "w", encoding="utf-8") as f:
            json.dump(report, f, indent=2, ensure_ascii=False)

        return path

    def to_json_string(self, report: dict[str, Any], pretty: bool = True) -> str:
        """Convert report to JSON string."""
        if pretty:
            return json.dumps(report, indent=2, ensure_ascii=False)
        return json.dumps(report, ensure_ascii=False)

    def generate_cli_output(
        self,
        report: dict[str, Any],
        report_path: Optional[str] = None,
    ) -> dict[str, Any]:
        """Generate the CLI JSON envelope.

        Format:
        {
            "success": bool,
            "command": "refresh",
            "data": { ... },
            "message": str
        }

        Args:
            report: Cycle report dictionary.
            report_path: Path where report was saved.

        Returns:
            CLI output dictionary.
        """
        summary = report["summary"]
        success = report["status"] != "failed"

        data: dict[str, Any] = {
            "discovered": summary["discovered"],
            "attempted": summary["attempted"],
            "responded": summary["responded"],
            "duration_ms": summary["duration_ms"],
            "servers": report["servers"],
        }

        if report_path:
            data["report_path"] = report_path

        if report["status"] == "failed":
            message = f"Refresh failed: {report['error']}"
        elif report["status"] == "cancelled":
            message = f"Refresh cancelled, {summary['responded']} server(s) found"
        else:
            message = f"Found {summary['responded']} active server(s)"

        return {
            "success": success,
            "command": "refresh",
            "data": data,
            "message": message,
        }
