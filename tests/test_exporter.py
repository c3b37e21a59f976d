from datetime import datetime

import pytest

from orbitai.errors import ExportError
from orbitai.learning import Exporter
from orbitai.learning.exporter import format_export_timestamp


def test_export_copies_models_and_logs(mochi_dirs):
    bundle = Exporter().export(mochi_dirs["models"], mochi_dirs["logs"], mochi_dirs["to_ground"], "2024-03-01_12-00-00")

    assert bundle == mochi_dirs["to_ground"] / "learning" / "mochi-2024-03-01_12-00-00"
    assert (bundle / "models" / "arow.model").read_text() == "weights"
    assert (bundle / "logs" / "training.log").read_text() == "iteration 1"


def test_export_into_existing_bundle_merges(mochi_dirs):
    exporter = Exporter()
    exporter.export(mochi_dirs["models"], mochi_dirs["logs"], mochi_dirs["to_ground"], "ts")
    (mochi_dirs["models"] / "second.model").write_text("more")
    bundle = exporter.export(mochi_dirs["models"], mochi_dirs["logs"], mochi_dirs["to_ground"], "ts")
    assert sorted(p.name for p in (bundle / "models").iterdir()) == ["arow.model", "second.model"]


def test_missing_source_raises(mochi_dirs, tmp_path):
    with pytest.raises(ExportError):
        Exporter().export(tmp_path / "nope", mochi_dirs["logs"], mochi_dirs["to_ground"], "ts")
    assert not (mochi_dirs["to_ground"] / "learning").exists()


def test_export_timestamp_format():
    millis = int(datetime(2024, 3, 1, 12, 30, 5).timestamp() * 1000)
    assert format_export_timestamp(millis) == "2024-03-01_12-30-05"
