import json

import pytest

import claude_token_counter as ctc
from claude_token_counter import (
    AggregatedUsage,
    LogFileError,
    LogRootNotFound,
    NoLogFilesError,
    Usage,
    aggregate_corpus,
    aggregate_file,
    aggregate_lines,
)


def _usage_line(**counters):
    return json.dumps({"type": "assistant", "message": {"model": "claude-sonnet-4-5", "usage": counters}})


def _write(path, lines):
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text("\n".join(lines) + "\n", encoding="utf-8")
    return path


def test_add_counts_one_message_per_usage():
    agg = AggregatedUsage()
    agg.add(Usage(1, 2, 3, 4))
    agg.add(Usage())
    assert agg == AggregatedUsage(1, 2, 3, 4, message_count=2)
    assert agg.total() == 10


def test_merge_is_commutative_and_associative():
    a = AggregatedUsage(1, 2, 3, 4, 1)
    b = AggregatedUsage(10, 0, 5, 0, 3)
    c = AggregatedUsage(100, 200, 0, 7, 2)
    assert a + b == b + a
    assert (a + b) + c == a + (b + c)
    # + does not mutate its operands
    assert a == AggregatedUsage(1, 2, 3, 4, 1)


def test_file_with_valid_and_invalid_lines(tmp_path):
    p = _write(tmp_path / "s.jsonl", [
        '{"message":{"usage":{"input_tokens":100,"output_tokens":50}}}',
        "not valid json",
    ])
    warnings = []
    agg = aggregate_file(str(p), warn=warnings.append)
    assert agg == AggregatedUsage(100, 50, 0, 0, message_count=1)
    assert len(warnings) == 1
    assert "line 2" in warnings[0]
    assert str(p) in warnings[0]


def test_default_warning_goes_to_stderr(tmp_path, capsys):
    p = _write(tmp_path / "s.jsonl", ["{broken"])
    agg = aggregate_file(str(p))
    assert agg == AggregatedUsage()
    err = capsys.readouterr().err
    assert err.startswith("Warning: Failed to parse line 1 in ")


def test_blank_lines_are_skipped_silently():
    warnings = []
    agg = aggregate_lines(["", "   \n", "\t\n", _usage_line(input_tokens=5) + "\n"], warn=warnings.append)
    assert agg == AggregatedUsage(5, 0, 0, 0, 1)
    assert warnings == []


def test_line_numbers_count_blank_lines():
    warnings = []
    aggregate_lines(["\n", "\n", "oops\n"], source="x.jsonl", warn=warnings.append)
    assert len(warnings) == 1
    assert "line 3 in x.jsonl" in warnings[0]


def test_file_without_usage_is_all_zero(tmp_path):
    p = _write(tmp_path / "s.jsonl", [
        '{"type":"user","message":{"role":"user","content":"hello"}}',
        '{"type":"summary","summary":"Refactor"}',
    ])
    assert aggregate_file(str(p), warn=pytest.fail) == AggregatedUsage()


def test_empty_file_is_all_zero(tmp_path):
    p = tmp_path / "empty.jsonl"
    p.write_text("")
    assert aggregate_file(str(p)) == AggregatedUsage(0, 0, 0, 0, message_count=0)


def test_missing_file_raises_log_file_error(tmp_path):
    with pytest.raises(LogFileError) as exc:
        aggregate_file(str(tmp_path / "gone.jsonl"))
    assert exc.value.path == str(tmp_path / "gone.jsonl")
    assert "failed to open" in exc.value.reason


def test_undecodable_file_raises_log_file_error(tmp_path):
    p = tmp_path / "bin.jsonl"
    p.write_bytes(b'{"message":{}}\n\xff\xfe\xfa\n')
    with pytest.raises(LogFileError):
        aggregate_file(str(p))


def test_corpus_two_file_scenario(tmp_path):
    _write(tmp_path / "p1" / "a.jsonl", [_usage_line(input_tokens=10, output_tokens=5)])
    _write(tmp_path / "p2" / "b.jsonl", [_usage_line(input_tokens=20, output_tokens=0, cache_read_input_tokens=5)])
    total = aggregate_corpus(str(tmp_path), warn=pytest.fail)
    assert total == AggregatedUsage(30, 5, 0, 5, message_count=2)


def test_corpus_skips_unreadable_file(tmp_path):
    _write(tmp_path / "good.jsonl", [_usage_line(input_tokens=7, cache_creation_input_tokens=3)])
    bad = tmp_path / "bad.jsonl"
    bad.write_bytes(b"\xff\xff\xff\n")
    warnings = []
    total = aggregate_corpus(str(tmp_path), warn=warnings.append)
    assert total == AggregatedUsage(7, 0, 3, 0, 1)
    assert len(warnings) == 1
    assert warnings[0].startswith(f"Skipping {bad}")


def test_corpus_skips_file_that_fails_to_open(tmp_path, monkeypatch):
    _write(tmp_path / "good.jsonl", [_usage_line(output_tokens=4)])
    vanished = _write(tmp_path / "vanished.jsonl", [_usage_line(output_tokens=1000)])
    real_aggregate_file = ctc.aggregate_file

    def flaky(path, warn=ctc.print_warning):
        if path == str(vanished):
            raise LogFileError(path, "failed to open: No such file or directory")
        return real_aggregate_file(path, warn=warn)

    monkeypatch.setattr(ctc, "aggregate_file", flaky)
    warnings = []
    total = aggregate_corpus(str(tmp_path), warn=warnings.append)
    assert total == AggregatedUsage(0, 4, 0, 0, 1)
    assert warnings == [f"Skipping {vanished}: failed to open: No such file or directory"]


def test_corpus_with_no_files_raises_no_data(tmp_path):
    (tmp_path / "proj").mkdir()
    (tmp_path / "proj" / "readme.md").write_text("x")
    with pytest.raises(NoLogFilesError):
        aggregate_corpus(str(tmp_path))


def test_corpus_files_without_usage_is_not_an_error(tmp_path):
    _write(tmp_path / "a.jsonl", ['{"type":"summary"}'])
    assert aggregate_corpus(str(tmp_path)) == AggregatedUsage()


def test_corpus_missing_root_raises(tmp_path):
    with pytest.raises(LogRootNotFound):
        aggregate_corpus(str(tmp_path / "nope"))


def test_corpus_total_independent_of_file_order(tmp_path, monkeypatch):
    for i in range(6):
        _write(tmp_path / f"p{i}" / f"s{i}.jsonl", [
            _usage_line(input_tokens=i, output_tokens=2 * i, cache_read_input_tokens=i * i),
            _usage_line(cache_creation_input_tokens=i + 1),
        ])
    forward = aggregate_corpus(str(tmp_path))
    real_find = ctc.find_log_files
    monkeypatch.setattr(ctc, "find_log_files", lambda root: list(reversed(sorted(real_find(root)))))
    backward = aggregate_corpus(str(tmp_path))
    threaded = aggregate_corpus(str(tmp_path), jobs=4)
    assert forward == backward == threaded
    assert forward.message_count == 12


def test_carriage_return_inside_record_is_not_a_line_break(tmp_path):
    p = tmp_path / "cr.jsonl"
    p.write_bytes(b'{"message":\r{"usage":{"input_tokens":5}}}\n{"message":{"usage":{"output_tokens":2}}}\r\n')
    warnings = []
    agg = aggregate_file(str(p), warn=warnings.append)
    assert agg == AggregatedUsage(5, 2, 0, 0, message_count=2)
    assert warnings == []
