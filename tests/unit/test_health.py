import asyncio

import pytest

from paper_search.services.health import check_health


class FakePing:
    def __init__(self, ok):
        self.ok = ok

    def ping(self):
        return self.ok


@pytest.mark.parametrize(
    "mongo_ok,opensearch_ok,expected",
    [(True, True, "healthy"), (True, False, "degraded"), (False, False, "unhealthy")],
)
def test_health_report_status(mongo_ok, opensearch_ok, expected):
    report = asyncio.run(check_health(FakePing(mongo_ok), FakePing(opensearch_ok)))

    assert report.status == expected
    assert {s.name: s.status for s in report.services} == {
        "mongodb": "healthy" if mongo_ok else "unhealthy",
        "opensearch": "healthy" if opensearch_ok else "unhealthy",
    }
