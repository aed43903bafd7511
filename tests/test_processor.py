"""Tests for file and module processing."""

from __future__ import annotations

import asyncio
import base64

import pytest

from fakes import FakeFetcher
from unfold.errors import DecodeError, ExplorationCancelled
from unfold.models import EntryType, ExtractedKnowledge, FilePayload, UnfoldConfig
from unfold.processor import (
    TRUNCATION_MARKER,
    FileProcessor,
    content_summary,
    decode_payload,
    truncate_preview,
)
from unfold.store import KnowledgeStore
from unfold.tracker import ExplorationTracker

PAYMENT_JS = """\
// Charges the member card through Stripe
function chargeMember(memberId) {
  return stripe.charges.create({ memberId });
}

router.post('/api/payments', chargeMember);

module.exports = { chargeMember };
"""


def _processor(fetcher, **kwargs) -> FileProcessor:
    store = kwargs.pop("store", None) or KnowledgeStore()
    return FileProcessor(fetcher, store, **kwargs)


class TestDecodePayload:
    def test_plain_string(self):
        assert decode_payload("hello", "a.txt") == "hello"

    def test_base64(self):
        payload = FilePayload(content=base64.b64encode(b"const a = 1;").decode(), encoding="base64")
        assert decode_payload(payload, "a.js") == "const a = 1;"

    def test_invalid_utf8_raises(self):
        payload = FilePayload(content=base64.b64encode(b"\xff\xfe\xfa").decode(), encoding="base64")
        with pytest.raises(DecodeError):
            decode_payload(payload, "a.js")

    def test_unknown_encoding_raises(self):
        with pytest.raises(DecodeError):
            decode_payload(FilePayload(content="x", encoding="gzip"), "a.js")


class TestProcessFile:
    def test_entries_for_a_source_file(self):
        fetcher = FakeFetcher({"src/payment.js": PAYMENT_JS})
        proc = _processor(fetcher)
        result = asyncio.run(proc.process_file("src/payment.js"))

        assert result.ok and result.files_processed == 1
        assert result.entries_added == len(proc.store)
        contents = {e.type: e.content for e in proc.store}
        assert contents[EntryType.comment] == "Charges the member card through Stripe"
        assert contents[EntryType.function] == "function chargeMember(memberId) { ... }"
        assert contents[EntryType.export] == "module.exports.chargeMember = chargeMember"
        assert contents[EntryType.api_route] == "API Route: POST /api/payments => chargeMember"
        assert contents[EntryType.file_content] == PAYMENT_JS

    def test_function_entry_metadata(self):
        fetcher = FakeFetcher({"src/payment.js": PAYMENT_JS})
        proc = _processor(fetcher)
        asyncio.run(proc.process_file("src/payment.js"))
        func = next(e for e in proc.store if e.type == EntryType.function)
        assert func.metadata["name"] == "chargeMember"
        assert func.metadata["line"] == 2
        assert "charge" in func.keywords
        assert "member" in func.keywords

    def test_file_over_cap_is_marked_without_entries(self):
        fetcher = FakeFetcher({"src/huge.js": "x" * 150_000})
        proc = _processor(fetcher)
        result = asyncio.run(proc.process_file("src/huge.js"))
        assert result.ok and result.skipped
        assert result.reason == "file too large"
        assert "src/huge.js" in proc.processed
        assert len(proc.store) == 0

    def test_second_call_is_a_no_op(self):
        fetcher = FakeFetcher({"src/payment.js": PAYMENT_JS})
        proc = _processor(fetcher)
        asyncio.run(proc.process_file("src/payment.js"))
        count = len(proc.store)
        again = asyncio.run(proc.process_file("src/payment.js"))
        assert again.ok and again.skipped
        assert len(proc.store) == count
        assert fetcher.file_requests == ["src/payment.js"]

    def test_base64_payload(self):
        payload = FilePayload(content=base64.b64encode(PAYMENT_JS.encode()).decode(), encoding="base64")
        proc = _processor(FakeFetcher({"src/payment.js": payload}))
        asyncio.run(proc.process_file("src/payment.js"))
        assert any(e.type == EntryType.function for e in proc.store)

    def test_decode_failure_is_isolated(self):
        bad = FilePayload(content=base64.b64encode(b"\xff\xfe\xfa").decode(), encoding="base64")
        tracker = ExplorationTracker()
        fetcher = FakeFetcher({"src/bad.js": bad, "src/good.js": PAYMENT_JS})
        proc = _processor(fetcher, tracker=tracker)

        results = asyncio.run(proc.process_files(["src/bad.js", "src/good.js"]))

        assert [r.ok for r in results] == [False, True]
        assert all(e.file_path == "src/good.js" for e in proc.store)
        assert len(tracker.snapshot().connection_errors) == 1

    def test_fetch_failure_reports_not_ok(self):
        fetcher = FakeFetcher({"src/a.js": PAYMENT_JS}, fail_files={"src/a.js"})
        proc = _processor(fetcher)
        result = asyncio.run(proc.process_file("src/a.js"))
        assert not result
        assert result.reason
        assert len(proc.store) == 0

    def test_unexpected_transport_error_is_isolated(self):
        fetcher = FakeFetcher(
            {"src/a.js": PAYMENT_JS, "src/b.js": PAYMENT_JS},
            errors={"src/b.js": ConnectionResetError(104, "Connection reset by peer")},
        )
        tracker = ExplorationTracker()
        proc = _processor(fetcher, tracker=tracker)
        results = asyncio.run(proc.process_files(["src/a.js", "src/b.js"]))
        assert [r.ok for r in results] == [True, False]
        assert "ConnectionResetError" in results[1].reason
        assert {e.file_path for e in proc.store} == {"src/a.js"}
        assert len(tracker.snapshot().connection_errors) == 1

    def test_excluded_file_is_never_fetched(self):
        fetcher = FakeFetcher({"assets/logo.png": "binary"})
        proc = _processor(fetcher)
        result = asyncio.run(proc.process_file("assets/logo.png"))
        assert result.skipped and not result.ok
        assert fetcher.file_requests == []

    def test_preview_is_truncated(self):
        content = "const value = 1;\n" * 300
        proc = _processor(FakeFetcher({"src/long.js": content}))
        asyncio.run(proc.process_file("src/long.js"))
        whole = next(e for e in proc.store if e.type == EntryType.file_content)
        assert whole.content.endswith(TRUNCATION_MARKER)
        assert len(whole.content) == 2000 + len(TRUNCATION_MARKER)
        assert whole.metadata["truncated"] is True

    def test_tiny_file_has_no_whole_file_entry(self):
        proc = _processor(FakeFetcher({"src/tiny.py": "x = 1"}))
        asyncio.run(proc.process_file("src/tiny.py"))
        assert not any(e.type == EntryType.file_content for e in proc.store)

    def test_extractor_failure_still_indexes_file(self):
        class Broken:
            def extract(self, content: str, file_path: str) -> ExtractedKnowledge:
                raise RuntimeError("boom")

        proc = _processor(FakeFetcher({"src/payment.js": PAYMENT_JS}), extractor=Broken())
        result = asyncio.run(proc.process_file("src/payment.js"))
        assert result.ok
        assert [e.type for e in proc.store][0] == EntryType.file_content

    def test_stale_generation_cancels_before_append(self):
        proc = _processor(FakeFetcher({"src/payment.js": PAYMENT_JS}), is_current=lambda: False)
        with pytest.raises(ExplorationCancelled):
            asyncio.run(proc.process_file("src/payment.js"))
        assert len(proc.store) == 0


class TestProcessFiles:
    def test_concurrent_fetches_keep_listing_order(self):
        files = {f"src/f{i}.js": f"// module number {i} here\nconst v{i} = {i};\n" for i in range(4)}
        # earlier files finish last
        delays = {f"src/f{i}.js": 0.04 - i * 0.01 for i in range(4)}
        fetcher = FakeFetcher(files, delays=delays)
        proc = _processor(fetcher, config=UnfoldConfig(concurrency=4))

        asyncio.run(proc.process_files(list(files)))

        order = list(dict.fromkeys(e.file_path for e in proc.store))
        assert order == list(files)


class TestProcessModule:
    def test_file_cap_per_directory(self):
        files = {f"src/f{i:02d}.js": f"// module number {i} here\n" for i in range(20)}
        proc = _processor(FakeFetcher(files))
        result = asyncio.run(proc.process_module("src"))
        assert result.files_processed == 15
        assert "src/f14.js" in proc.processed
        assert "src/f15.js" not in proc.processed

    def test_recurses_into_interesting_dirs_only(self):
        files = {
            "src/index.js": "// entry point of the app\n",
            "src/services/billing.js": "// billing service code\n",
            "src/docs/notes.js": "// internal notes only\n",
            "src/__tests__/api.js": "// test for the api\n",
        }
        proc = _processor(FakeFetcher(files))
        asyncio.run(proc.process_module("src"))
        assert proc.processed == {"src/index.js", "src/services/billing.js"}

    def test_depth_limit(self):
        files = {
            "src/services/billing.js": "// billing service code\n",
            "src/services/payments/stripe.js": "// stripe payment code\n",
        }
        proc = _processor(FakeFetcher(files), config=UnfoldConfig(max_depth=1))
        asyncio.run(proc.process_module("src"))
        assert "src/services/billing.js" in proc.processed
        assert "src/services/payments/stripe.js" not in proc.processed

    def test_unlistable_directory(self):
        proc = _processor(FakeFetcher({}))
        result = asyncio.run(proc.process_module("missing"))
        assert not result.ok
        assert result.files_processed == 0

    def test_unexpected_listing_error_is_isolated(self):
        files = {
            "src/index.js": "// entry point of the app\n",
            "src/services/billing.js": "// billing service code\n",
        }
        fetcher = FakeFetcher(files, errors={"src/services": PermissionError(13, "Permission denied")})
        proc = _processor(fetcher)
        result = asyncio.run(proc.process_module("src"))
        assert result.ok
        assert result.files_processed == 1
        assert proc.processed == {"src/index.js"}

    def test_total_file_limit(self):
        files = {f"src/{d}/f{i}.js": f"// module {d} number {i}\n" for d in ("services", "models", "routes") for i in range(4)}
        fetcher = FakeFetcher(files)
        proc = _processor(fetcher, config=UnfoldConfig(max_files=5))
        result = asyncio.run(proc.process_module("src"))
        assert result.files_processed == 5
        assert len(fetcher.file_requests) == 5
        assert "src/routes" not in fetcher.list_requests

class TestHelpers:
    def test_truncate_preview_short_content_unchanged(self):
        assert truncate_preview("short", 10) == "short"

    def test_generic_summary(self):
        summary = content_summary("a\nb\nfunction go() {}", "src/x.js")
        assert summary == "File Summary: 3 lines, 1 functions"

    def test_config_summary(self):
        summary = content_summary("apiKey: 'abc'\nmode: 'dev'", "src/config.js")
        assert summary == "Configuration File Summary: Settings: 2 configuration values"
