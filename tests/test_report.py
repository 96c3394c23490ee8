import logging

import pytest

from api_deploy_agent.logger import log_stage
from api_deploy_agent.report import (
    API_COLUMNS,
    DeploymentReport,
    DeploymentRun,
    api_report_row,
    lambda_report_row,
    render_table,
)


def _report(**kwargs):
    return DeploymentReport(identifier="public", name="TEST-public", region="eu-west-1", **kwargs)


class TestDeploymentReport:
    def test_url_needs_remote_id_and_stage(self):
        assert _report(stage="v1").url is None
        assert _report(remote_id="abc").url is None
        assert _report(remote_id="abc", stage="v1").url == "https://abc.execute-api.eu-west-1.amazonaws.com/v1"

    def test_run_success(self):
        assert DeploymentRun(reports=[_report(), _report()]).success
        assert not DeploymentRun(reports=[_report(), _report(failed="boom")]).success

    def test_api_row_shows_failure_instead_of_url(self):
        row = api_report_row(_report(operation="Create", remote_id="abc", stage="v1", failed="boom"))
        assert row[-1] == "boom"

    def test_lambda_row(self):
        row = lambda_report_row(_report(operation="Update", published_version="3", alias_existed=True, arn="arn:x"))
        assert row[2:] == ["Update", "3", "yes", "arn:x"]


def test_render_table_aligns_columns():
    table = render_table(API_COLUMNS, [api_report_row(_report(operation="Create", remote_id="abc", stage="v1"))])
    header, separator, row = table.splitlines()
    assert header.startswith("Identifier")
    assert row.index("TEST-public") == header.index("Name")


class TestLogStage:
    def test_logs_entry_and_exit(self, caplog):
        logger = logging.getLogger("api_deploy_agent.tests")
        with caplog.at_level(logging.INFO, logger="api_deploy_agent.tests"):
            with log_stage("Deploy APIs", logger):
                pass
        messages = [r.getMessage() for r in caplog.records]
        assert messages[0] == "Deploy APIs ..."
        assert messages[1].startswith("Deploy APIs done")
        assert all(r.stage == "Deploy APIs" for r in caplog.records)

    def test_logs_failure_and_reraises(self, caplog):
        logger = logging.getLogger("api_deploy_agent.tests")
        with caplog.at_level(logging.INFO, logger="api_deploy_agent.tests"):
            with pytest.raises(RuntimeError):
                with log_stage("Publish APIs", logger):
                    raise RuntimeError("boom")
        assert caplog.records[-1].levelno == logging.ERROR
