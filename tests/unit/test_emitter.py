"""Unit tests for batch splitting and output sinks."""

import io
import json
import sys

import pytest

from searchfeed.lib.classify import DataBatch, EmptyBatch
from searchfeed.lib.emitter import CollectingSink, JsonLinesSink, create_sink, split
from searchfeed.lib.errors import ConfigurationError
from tests.helpers import read_json_lines


class TestSplit:
    def test_one_record_per_element_in_order(self):
        records = [{"id": "3"}, {"id": "1"}, {"id": "2"}]
        assert split(DataBatch(records=records)) == records

    def test_empty_batch(self):
        assert split(EmptyBatch()) == []

    def test_returns_a_new_list(self):
        records = [{"id": "1"}]
        result = split(DataBatch(records=records))
        result.append({"id": "2"})
        assert records == [{"id": "1"}]


class TestJsonLinesSink:
    def test_writes_one_line_per_record(self):
        stream = io.StringIO()
        sink = JsonLinesSink(stream)
        sink.write({"id": "1", "text": "héllo"})
        sink({"id": "2"})

        lines = stream.getvalue().splitlines()
        assert [json.loads(line) for line in lines] == [
            {"id": "1", "text": "héllo"},
            {"id": "2"},
        ]
        assert "héllo" in lines[0]

    def test_close_leaves_borrowed_stream_open(self):
        stream = io.StringIO()
        JsonLinesSink(stream).close()
        assert not stream.closed

    def test_open_appends(self, tmp_path):
        path = tmp_path / "out" / "tweets.jsonl"

        with JsonLinesSink.open(path) as sink:
            sink.write({"id": "1"})
        with JsonLinesSink.open(path) as sink:
            sink.write({"id": "2"})

        assert read_json_lines(path) == [{"id": "1"}, {"id": "2"}]

    def test_context_manager_closes_owned_stream(self, tmp_path):
        sink = JsonLinesSink.open(tmp_path / "tweets.jsonl")
        with sink:
            pass
        assert sink.stream.closed


class TestCollectingSink:
    def test_collects(self):
        sink = CollectingSink()
        sink({"id": "1"})
        sink.write({"id": "2"})
        assert sink.records == [{"id": "1"}, {"id": "2"}]


class TestCreateSink:
    @pytest.mark.parametrize("options", [None, {}, {"stdout": {}}, {"stdout": None}])
    def test_stdout_default(self, options):
        sink = create_sink(options)
        assert isinstance(sink, JsonLinesSink)
        assert sink.stream is sys.stdout

    def test_file(self, tmp_path):
        path = tmp_path / "tweets.jsonl"
        with create_sink({"file": {"path": str(path)}}) as sink:
            sink.write({"id": "1"})
        assert read_json_lines(path) == [{"id": "1"}]

    def test_file_requires_path(self):
        with pytest.raises(ConfigurationError, match="output.file.path"):
            create_sink({"file": {}})

    def test_unknown_output(self):
        with pytest.raises(ConfigurationError, match="stdout, file"):
            create_sink({"kafka": {"topic": "tweets"}})
