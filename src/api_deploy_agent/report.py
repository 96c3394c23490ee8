"""Deployment reports and their tabular rendering."""

from pydantic import BaseModel


class DeploymentReport(BaseModel):
    """Outcome of deploying one API or one Lambda during a run."""

    identifier: str
    name: str
    region: str
    operation: str | None = None  # Create / Update
    stage: str | None = None
    duration: float = 0.0  # seconds
    remote_id: str | None = None  # REST API id
    arn: str | None = None
    published_version: str | None = None
    alias_existed: bool | None = None
    published: bool = False
    failed: str | None = None

    @property
    def succeeded(self) -> bool:
        return self.failed is None

    @property
    def url(self) -> str | None:
        if not self.remote_id or not self.stage:
            return None
        return f"https://{self.remote_id}.execute-api.{self.region}.amazonaws.com/{self.stage}"


class DeploymentRun(BaseModel):
    """All API reports of one orchestrator run."""

    reports: list[DeploymentReport] = []
    published: bool = False

    @property
    def success(self) -> bool:
        return all(r.succeeded for r in self.reports)


API_COLUMNS = ("Identifier", "Name", "Operation", "Stage", "AWS identifier", "Url")
LAMBDA_COLUMNS = ("Identifier", "Name", "Operation", "Version", "Alias existed", "ARN")


def api_report_row(report: DeploymentReport) -> list[str]:
    return [
        report.identifier,
        report.name,
        report.operation or "",
        report.stage or "",
        report.remote_id or "",
        report.failed if report.failed else (report.url or ""),
    ]


def lambda_report_row(report: DeploymentReport) -> list[str]:
    alias = "" if report.alias_existed is None else ("yes" if report.alias_existed else "no")
    return [
        report.identifier,
        report.name,
        report.operation or "",
        report.published_version or "",
        alias,
        report.failed or report.arn or "",
    ]


def render_table(columns: tuple[str, ...], rows: list[list[str]]) -> str:
    """Render rows as a plain left-aligned text table."""
    widths = [len(c) for c in columns]
    for row in rows:
        for i, cell in enumerate(row):
            widths[i] = max(widths[i], len(cell))

    def _line(cells) -> str:
        return "  ".join(cell.ljust(widths[i]) for i, cell in enumerate(cells)).rstrip()

    lines = [_line(columns), _line("-" * w for w in widths)]
    lines.extend(_line(row) for row in rows)
    return "\n".join(lines)
