"""Test pipeline settings."""

from pathlib import Path

import pytest
from pydantic import ValidationError

from annotation_recommender.config import PipelineSettings


class TestPipelineSettings:
    def test_defaults(self):
        settings = PipelineSettings()

        assert settings.train_fraction == 0.8
        assert settings.min_test_size == 10
        assert settings.trainings_per_selection == 5
        assert settings.learning_record_dir == Path("data") / "learning_records"

    def test_from_env(self, monkeypatch):
        monkeypatch.setenv("RECOMMENDER_TRAIN_FRACTION", "0.6")
        monkeypatch.setenv("RECOMMENDER_MAX_WORKERS", "2")
        monkeypatch.setenv("RECOMMENDER_DATA_DIR", "/tmp/records")
        monkeypatch.setenv("RECOMMENDER_LOG_LEVEL", "debug")

        settings = PipelineSettings.from_env()

        assert settings.train_fraction == 0.6
        assert settings.max_workers == 2
        assert settings.data_dir == Path("/tmp/records")
        assert settings.log_level == "DEBUG"

    def test_unset_variables_use_defaults(self, monkeypatch):
        monkeypatch.delenv("RECOMMENDER_MIN_TEST_SIZE", raising=False)

        assert PipelineSettings.from_env().min_test_size == 10

    @pytest.mark.parametrize(
        "name,value",
        [
            ("RECOMMENDER_TRAIN_FRACTION", "1.5"),
            ("RECOMMENDER_MAX_WORKERS", "0"),
            ("RECOMMENDER_LOG_LEVEL", "verbose"),
        ],
    )
    def test_invalid_values(self, monkeypatch, name, value):
        monkeypatch.setenv(name, value)

        with pytest.raises(ValidationError):
            PipelineSettings.from_env()
