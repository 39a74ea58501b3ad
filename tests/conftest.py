import pytest

from gazetteer_index import GazetteerIndex
from models import GazetteerMunicipalityEntry, GazetteerTownEntry, VisitRecord


@pytest.fixture
def towns():
    return [
        GazetteerTownEntry("大阪府", "大阪市西区", "北堀江一丁目", 34.670, 135.490),
        GazetteerTownEntry("大阪府", "大阪市西区", "北堀江二丁目", 34.675, 135.493),
        GazetteerTownEntry("大阪府", "大阪市西区", "北堀江三丁目", 34.680, 135.496),
        GazetteerTownEntry("大阪府", "大阪市西区", "北堀江四丁目", 34.685, 135.499),
        GazetteerTownEntry("大阪府", "大阪市中央区", "難波一丁目", 34.666, 135.501),
        GazetteerTownEntry("大阪府", "豊中市", "新千里東町", 34.810, 135.495),
    ]


@pytest.fixture
def municipalities():
    return [
        GazetteerMunicipalityEntry("大阪府", "大阪市", 34.694, 135.502),
        GazetteerMunicipalityEntry("大阪府", "大阪市西区", 34.676, 135.486),
        GazetteerMunicipalityEntry("大阪府", "大阪市中央区", 34.681, 135.510),
        GazetteerMunicipalityEntry("大阪府", "堺市美原区", 34.540, 135.560),
        GazetteerMunicipalityEntry("大阪府", "豊中市", 34.781, 135.469),
        GazetteerMunicipalityEntry("兵庫県", "尼崎市", 34.733, 135.406),
    ]


@pytest.fixture
def index(towns, municipalities):
    return GazetteerIndex.build(towns, municipalities)


def make_record(address=None, department="内科", month="2024-05", age=35, **fields):
    return VisitRecord(
        department=department,
        reservation_month=month,
        patient_age=age,
        patient_address=address,
        **fields
    )
