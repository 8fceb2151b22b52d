import asyncio
import json

from pdf.pdf_cli import build_parser, run
from services.extraction_client import ExtractionClient
from services.statement_service import StatementIngestionService


def test_every_file_runs_on_one_event_loop(tmp_path, capsys, test_settings, fake_client_factory, statement_pdf):
    loops = []

    def reply(_kwargs):
        loops.append(asyncio.get_running_loop())
        return {"expenses": [{"amount": 5.25, "currency": "USD", "occurred_on": "2024-06-28", "line_index": 2}]}

    fake = fake_client_factory(reply, reply)
    service = StatementIngestionService(client=ExtractionClient(client=fake), settings=test_settings)
    first, second = tmp_path / "a.pdf", tmp_path / "b.pdf"
    first.write_bytes(statement_pdf)
    second.write_bytes(statement_pdf)

    args = build_parser().parse_args([str(first), str(second), str(tmp_path / "missing.pdf")])
    asyncio.run(run(args, service))

    out = [json.loads(line) for line in capsys.readouterr().out.splitlines() if line.startswith("{")]
    assert [o.get("expenses") for o in out[:2]] == [1, 1]
    assert out[2] == {"file": str(tmp_path / "missing.pdf"), "error": "not_found"}
    assert len(loops) == 2 and loops[0] is loops[1]


def test_errors_are_reported_per_file(tmp_path, capsys, test_settings):
    bad = tmp_path / "notes.pdf"
    bad.write_bytes(b"not a pdf at all")
    service = StatementIngestionService(client=ExtractionClient(client=None), settings=test_settings)

    asyncio.run(run(build_parser().parse_args([str(bad), "--local"]), service))

    line = [l for l in capsys.readouterr().out.splitlines() if l.startswith("{")][0]
    assert json.loads(line)["file"] == str(bad)
    assert "error" in json.loads(line)
