import io
import zipfile

import pytest

from elb_dashboard.services.aggregator import Aggregator
from elb_dashboard.services.ingest import IngestService
from elb_dashboard.services.storage import DatasetStore

LOAD_BALANCER_CSV = """normalized_url,elb_status_code,request_verb,processing_time_bucket,count,total_requests,percentage
/api/players/{playerId},200,GET,0.3-1,120,500,24.0
/api/players/{playerId},500,GET,10-30,5,500,1.0
/api/health,200,GET,0-0.3,300,300,100.0
/api/players/{playerId},200,GET,,4,500,0.8
/api/login,200,POST,1-2,abc,10,1.0
"""

PERFORMANCE_CSV = """base_url,request_verb,min_rt,max_rt,avg_rt,P25,P50,P60,P75,P90,P95,total,requests
https://game.example.com/api/players,GET,12,4200,180,40,90,110,160,600,950,21600,120
https://game.example.com/api/login,POST,30,900,120,60,80,95,110,200,250,6000,50
https://game.example.com/api/shop,GET,5,25000,2100,300,800,1100,2000,7000,12000,420000,200
https://game.example.com/api/broken,GET,5,,100,1,2,3,4,5,6,7,8
"""

SLOW_QUERY_CSV = """time,processing_time,request_url,elb_status_code
2024-03-01T10:15:00Z,12.5,/api/players/998877/profile,200
2024-03-01T09:00:00Z,31.2,/api/health,504
2024-03-01T11:30:00Z,not-a-number,/api/players/1,200
,10.0,/api/players/2,200
"""

ERROR_SUMMARY_TXT = """42 "disk full"
7 {"code":500}
not a valid line
3 plain words here
"""


@pytest.fixture
def load_balancer_csv():
    return LOAD_BALANCER_CSV


@pytest.fixture
def performance_csv():
    return PERFORMANCE_CSV


@pytest.fixture
def slow_query_csv():
    return SLOW_QUERY_CSV


@pytest.fixture
def error_summary_txt():
    return ERROR_SUMMARY_TXT


@pytest.fixture
def store():
    return DatasetStore()


@pytest.fixture
def ingest(store):
    return IngestService(store)


@pytest.fixture
def aggregator(store):
    return Aggregator(store)


@pytest.fixture
def make_zip():
    def _make(entries):
        buf = io.BytesIO()
        with zipfile.ZipFile(buf, "w") as archive:
            for name, text in entries:
                if name.endswith("/"):
                    archive.writestr(zipfile.ZipInfo(name), "")
                else:
                    archive.writestr(name, text)
        return buf.getvalue()

    return _make
