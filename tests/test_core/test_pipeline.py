"""Tests for the translation pipeline."""

import asyncio
import random
import time
from pathlib import Path
from typing import Dict, List, Optional
from unittest.mock import patch

import pytest

from codeport.core.errors import AuthError, DiscoveryError
from codeport.core.pipeline import Orchestrator, plan, run
from codeport.core.translation.interface import TranslationRequest, TranslationResult
from codeport.core.types import Failure, FailureKind, RunOptions, RunState, Success
from codeport.core.writer import ResultWriter


class FakeTranslator:
    """Translator answering with a PHP rendering of the chunk.

    Units whose file stem is in `failures` fail with the given kind.
    """

    def __init__(
        self,
        failures: Optional[Dict[str, FailureKind]] = None,
        delays: Optional[Dict[str, float]] = None,
        jitter: float = 0.0,
    ) -> None:
        self.failures = failures or {}
        self.delays = delays or {}
        self.jitter = jitter
        self.requests: List[TranslationRequest] = []
        self.in_flight = 0
        self.max_in_flight = 0

    async def translate(self, request: TranslationRequest) -> TranslationResult:
        self.requests.append(request)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            stem = request.unit.relative_path.stem
            delay = self.delays.get(f"{stem}:{request.chunk_index}", self.delays.get(stem, 0.0))
            await asyncio.sleep(delay + random.uniform(0, self.jitter))

            kind = self.failures.get(stem)
            if kind is not None:
                outcome = Failure(kind=kind, message=f"{stem} failed")
            else:
                outcome = Success(text=request.source_text.replace("class", "final class"))
            return TranslationResult(
                unit=request.unit,
                chunk_index=request.chunk_index,
                outcome=outcome,
                attempts_used=1,
                tokens_used=10,
                cost=0.01,
            )
        finally:
            self.in_flight -= 1


def write_sources(root: Path, files: Dict[str, str]) -> Path:
    for relative, content in files.items():
        path = root / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content)
    return root


def written_files(root: Path) -> List[str]:
    return sorted(path.relative_to(root).as_posix() for path in root.rglob("*") if path.is_file())


@pytest.fixture
def options() -> RunOptions:
    return RunOptions(concurrency=2)


@pytest.mark.asyncio
async def test_single_file(tmp_path: Path, options: RunOptions):
    """Test translating one file into the destination directory."""
    source = write_sources(tmp_path / "src", {"Foo.java": "class Foo {}\n"}) / "Foo.java"
    translator = FakeTranslator()

    summary = await run(source, tmp_path / "out", "sk-test", options, translator=translator)

    assert len(translator.requests) == 1
    assert summary.total_units == 1
    assert summary.succeeded == 1
    assert summary.ok
    assert summary.written == [tmp_path / "out" / "Foo.php"]
    assert (tmp_path / "out" / "Foo.php").read_text() == "final class Foo {}\n"


@pytest.mark.asyncio
async def test_tree_with_rejected_file(tmp_path: Path, options: RunOptions):
    """Test that one rejected file fails alone."""
    source = write_sources(
        tmp_path / "src",
        {
            "A.java": "class A {}",
            "pkg/B.java": "class B {}",
            "pkg/sub/C.java": "class C {}",
        },
    )
    translator = FakeTranslator(failures={"B": FailureKind.REJECTED})

    summary = await run(source, tmp_path / "out", "sk-test", options, translator=translator)

    assert summary.total_units == 3
    assert summary.succeeded == 2
    assert [failed.path for failed in summary.failed] == [source / "pkg" / "B.java"]
    assert summary.failed[0].kind == FailureKind.REJECTED
    assert summary.failed[0].reason == "RejectedContentError: B failed"
    assert written_files(tmp_path / "out") == ["A.php", "pkg/sub/C.php"]
    assert summary.tokens_used == 30
    assert summary.cost == pytest.approx(0.03)


@pytest.mark.asyncio
async def test_failures_listed_in_discovery_order(tmp_path: Path):
    """Test that failures keep discovery order whatever order they finish in."""
    names = ["A", "B", "C", "D", "E"]
    source = write_sources(tmp_path / "src", {f"{name}.java": f"class {name} {{}}" for name in names})
    # Earlier files finish last
    delays = {name: 0.05 * (len(names) - i) for i, name in enumerate(names)}
    translator = FakeTranslator(
        failures={name: FailureKind.SERVICE for name in names},
        delays=delays,
    )

    summary = await run(
        source, tmp_path / "out", "sk-test", RunOptions(concurrency=5), translator=translator
    )

    assert [failed.path.name for failed in summary.failed] == [f"{name}.java" for name in names]
    assert not (tmp_path / "out").exists()


@pytest.mark.asyncio
async def test_auth_failure_aborts_run(tmp_path: Path):
    """Test that an authentication failure stops the run and writes nothing."""
    source = write_sources(
        tmp_path / "src", {f"F{i}.java": f"class F{i} {{}}" for i in range(6)}
    )
    translator = FakeTranslator(failures={f"F{i}": FailureKind.AUTH for i in range(6)})

    with pytest.raises(AuthError, match="failed"):
        await run(source, tmp_path / "out", "bad-key", RunOptions(concurrency=1), translator=translator)

    assert len(translator.requests) == 1
    assert not (tmp_path / "out").exists()


@pytest.mark.asyncio
async def test_auth_failure_cancels_in_flight_units(tmp_path: Path):
    """Test that units still waiting on the service are abandoned after an auth failure."""
    source = write_sources(
        tmp_path / "src",
        {"Bad.java": "class Bad {}", "Slow.java": "class Slow {}"},
    )
    translator = FakeTranslator(failures={"Bad": FailureKind.AUTH}, delays={"Slow": 5.0})

    with pytest.raises(AuthError):
        await asyncio.wait_for(
            run(source, tmp_path / "out", "bad-key", RunOptions(concurrency=2), translator=translator),
            timeout=2.0,
        )

    assert not (tmp_path / "out").exists()


@pytest.mark.asyncio
async def test_concurrency_bound(tmp_path: Path):
    """Test that no more than `concurrency` requests are in flight."""
    source = write_sources(
        tmp_path / "src", {f"F{i:02}.java": f"class F{i} {{}}" for i in range(12)}
    )
    translator = FakeTranslator(delays={f"F{i:02}": 0.02 for i in range(12)}, jitter=0.02)

    summary = await run(
        source, tmp_path / "out", "sk-test", RunOptions(concurrency=3), translator=translator
    )

    assert summary.succeeded == 12
    assert 1 < translator.max_in_flight <= 3


@pytest.mark.asyncio
async def test_oversized_file_reassembled_in_order(tmp_path: Path):
    """Test that chunks are joined in source order even when they finish out of order."""
    blocks = [f"class Part{i} {{\n    int x = {i};\n}}\n" for i in range(4)]
    content = "\n".join(blocks)
    source = write_sources(tmp_path / "src", {"Big.java": content})
    # Later chunks finish first
    translator = FakeTranslator(delays={f"Big:{i}": 0.02 * (4 - i) for i in range(4)})
    options = RunOptions(concurrency=4, chunk_size=len(blocks[0]) + 1)

    summary = await run(source, tmp_path / "out", "sk-test", options, translator=translator)

    assert summary.succeeded == 1
    assert len(translator.requests) > 1
    assert (tmp_path / "out" / "Big.php").read_text() == content.replace("class", "final class")


@pytest.mark.asyncio
async def test_unreadable_file(tmp_path: Path, options: RunOptions):
    """Test that an undecodable file fails without stopping the others."""
    source = write_sources(tmp_path / "src", {"Good.java": "class Good {}"})
    (source / "Bad.java").write_bytes(b"class Caf\xe9 {}")
    translator = FakeTranslator()

    summary = await run(source, tmp_path / "out", "sk-test", options, translator=translator)

    assert summary.total_units == 2
    assert summary.succeeded == 1
    assert summary.failed[0].path == source / "Bad.java"
    assert summary.failed[0].kind == FailureKind.UNREADABLE
    assert [request.unit.relative_path for request in translator.requests] == [Path("Good.java")]


@pytest.mark.asyncio
async def test_symlink_outside_root(tmp_path: Path, options: RunOptions):
    """Test that a file resolving outside the source root is an invalid path."""
    source = write_sources(tmp_path / "src", {"Good.java": "class Good {}"})
    outside = tmp_path / "Outside.java"
    outside.write_text("class Outside {}")
    (source / "Linked.java").symlink_to(outside)

    summary = await run(source, tmp_path / "out", "sk-test", options, translator=FakeTranslator())

    assert summary.succeeded == 1
    assert summary.failed[0].kind == FailureKind.INVALID_PATH
    assert written_files(tmp_path / "out") == ["Good.php"]


@pytest.mark.asyncio
async def test_write_failure(tmp_path: Path, options: RunOptions):
    """Test that a blocked destination directory fails only its units."""
    source = write_sources(
        tmp_path / "src", {"A.java": "class A {}", "pkg/B.java": "class B {}"}
    )
    (tmp_path / "out").mkdir()
    (tmp_path / "out" / "pkg").write_text("in the way")

    summary = await run(source, tmp_path / "out", "sk-test", options, translator=FakeTranslator())

    assert summary.succeeded == 1
    assert summary.failed[0].path == source / "pkg" / "B.java"
    assert summary.failed[0].kind == FailureKind.WRITE


@pytest.mark.asyncio
async def test_rerun_produces_same_tree(tmp_path: Path, options: RunOptions):
    """Test that running twice writes the same set of files."""
    source = write_sources(
        tmp_path / "src", {"A.java": "class A {}", "x/y/B.java": "class B {}"}
    )

    first = await run(source, tmp_path / "out", "sk-test", options, translator=FakeTranslator())
    files = written_files(tmp_path / "out")
    second = await run(source, tmp_path / "out", "sk-test", options, translator=FakeTranslator())

    assert written_files(tmp_path / "out") == files == ["A.php", "x/y/B.php"]
    assert sorted(first.written) == sorted(second.written)


@pytest.mark.asyncio
async def test_empty_tree(tmp_path: Path, options: RunOptions):
    """Test that an empty source tree gives an empty summary."""
    (tmp_path / "src").mkdir()
    translator = FakeTranslator()

    summary = await run(tmp_path / "src", tmp_path / "out", "sk-test", options, translator=translator)

    assert summary.total_units == 0
    assert summary.ok
    assert translator.requests == []


@pytest.mark.asyncio
async def test_missing_source(tmp_path: Path, options: RunOptions):
    """Test that a missing source root stops the run before any request."""
    with pytest.raises(DiscoveryError):
        await run(tmp_path / "missing", tmp_path / "out", "sk-test", options, translator=FakeTranslator())


@pytest.mark.asyncio
async def test_destination_is_a_file(tmp_path: Path, options: RunOptions):
    """Test that the destination must be a directory."""
    source = write_sources(tmp_path / "src", {"A.java": "class A {}"})
    (tmp_path / "out").write_text("file")

    with pytest.raises(DiscoveryError, match="Not a directory"):
        await run(source, tmp_path / "out", "sk-test", options, translator=FakeTranslator())


@pytest.mark.asyncio
async def test_cancel_before_dispatch(tmp_path: Path, options: RunOptions):
    """Test that a cancelled run submits nothing and reports every unit."""
    source = write_sources(tmp_path / "src", {"A.java": "class A {}", "B.java": "class B {}"})
    translator = FakeTranslator()
    cancel_event = asyncio.Event()
    cancel_event.set()

    summary = await run(
        source, tmp_path / "out", "sk-test", options, translator=translator, cancel_event=cancel_event
    )

    assert translator.requests == []
    assert summary.total_units == 2
    assert [failed.kind for failed in summary.failed] == [FailureKind.CANCELLED] * 2


@pytest.mark.asyncio
async def test_cancel_lets_in_flight_units_finish(tmp_path: Path):
    """Test that cancelling mid-run drains submitted units and skips the rest."""
    source = write_sources(
        tmp_path / "src", {f"F{i}.java": f"class F{i} {{}}" for i in range(4)}
    )
    cancel_event = asyncio.Event()

    class CancellingTranslator(FakeTranslator):
        async def translate(self, request: TranslationRequest) -> TranslationResult:
            cancel_event.set()
            return await super().translate(request)

    translator = CancellingTranslator(delays={"F0": 0.05})

    summary = await run(
        source,
        tmp_path / "out",
        "sk-test",
        RunOptions(concurrency=1),
        translator=translator,
        cancel_event=cancel_event,
    )

    assert summary.total_units == 4
    assert summary.succeeded == 1
    assert written_files(tmp_path / "out") == ["F0.php"]
    assert [failed.path.name for failed in summary.failed] == ["F1.java", "F2.java", "F3.java"]
    assert all(failed.kind == FailureKind.CANCELLED for failed in summary.failed)


@pytest.mark.asyncio
async def test_orchestrator_reaches_done(tmp_path: Path, options: RunOptions):
    """Test the state of the orchestrator after a run."""
    source = write_sources(tmp_path / "src", {"A.java": "class A {}"})
    orchestrator = Orchestrator(source, tmp_path / "out", options, FakeTranslator())

    assert orchestrator.state == RunState.DISCOVERING
    await orchestrator.run()
    assert orchestrator.state == RunState.DONE


@pytest.mark.asyncio
async def test_plan(tmp_path: Path):
    """Test planning a run without calling the service."""
    source = write_sources(
        tmp_path / "src",
        {"A.java": "class A {}\n", "Big.java": "class Big {}\n\n" * 20},
    )
    (source / "Bad.java").write_bytes(b"\xff\xfe")

    run_plan = await plan(source, tmp_path / "out", RunOptions(chunk_size=64))

    assert [unit.destination_path.name for unit in run_plan.units] == ["A.php", "Big.php"]
    assert run_plan.units[0].requests == 1
    assert run_plan.units[1].requests > 1
    assert [failed.path.name for failed in run_plan.failed] == ["Bad.java"]
    assert run_plan.total_units == 3
    assert not (tmp_path / "out").exists()


@pytest.mark.asyncio
async def test_colliding_destinations(tmp_path: Path):
    """Test that two sources mapping to one destination never overwrite each other."""
    source = write_sources(tmp_path / "src", {"util.c": "int f(void);", "util.h": "int f(void);"})
    options = RunOptions(source_language="c", target_language="php", concurrency=2)
    translator = FakeTranslator()

    summary = await run(source, tmp_path / "out", "sk-test", options, translator=translator)

    assert summary.total_units == 2
    assert summary.succeeded == 1
    assert summary.written == [tmp_path / "out" / "util.php"]
    assert summary.failed[0].path == source / "util.h"
    assert summary.failed[0].kind == FailureKind.INVALID_PATH
    assert "util.c" in summary.failed[0].message
    assert [request.unit.relative_path for request in translator.requests] == [Path("util.c")]


@pytest.mark.asyncio
async def test_unencodable_output_fails_one_unit(tmp_path: Path, options: RunOptions):
    """Test that output which cannot be written as UTF-8 fails only its unit."""
    source = write_sources(tmp_path / "src", {"A.java": "class A {}", "B.java": "class B {}"})

    class SurrogateTranslator(FakeTranslator):
        async def translate(self, request: TranslationRequest) -> TranslationResult:
            result = await super().translate(request)
            if request.unit.relative_path.stem == "B":
                return result.model_copy(update={"outcome": Success(text="bad \ud800")})
            return result

    summary = await run(source, tmp_path / "out", "sk-test", options, translator=SurrogateTranslator())

    assert summary.total_units == 2
    assert summary.succeeded == 1
    assert summary.failed[0].path == source / "B.java"
    assert summary.failed[0].kind == FailureKind.WRITE
    assert written_files(tmp_path / "out") == ["A.php"]


@pytest.mark.asyncio
async def test_unexpected_error_fails_one_unit(tmp_path: Path, options: RunOptions):
    """Test that an exception raised while translating a unit is recorded, not raised."""
    source = write_sources(tmp_path / "src", {"A.java": "class A {}", "B.java": "class B {}"})

    class BrokenTranslator(FakeTranslator):
        async def translate(self, request: TranslationRequest) -> TranslationResult:
            if request.unit.relative_path.stem == "A":
                raise RuntimeError("client bug")
            return await super().translate(request)

    summary = await run(source, tmp_path / "out", "sk-test", options, translator=BrokenTranslator())

    assert summary.succeeded == 1
    assert summary.failed[0].path == source / "A.java"
    assert summary.failed[0].kind == FailureKind.SERVICE
    assert summary.failed[0].message == "RuntimeError: client bug"


@pytest.mark.asyncio
async def test_auth_failure_waits_for_writes_in_progress(tmp_path: Path):
    """Test that a file being written when the run aborts is complete before run raises."""
    source = write_sources(tmp_path / "src", {"A.java": "class A {}", "Bad.java": "class Bad {}"})
    translator = FakeTranslator(failures={"Bad": FailureKind.AUTH}, delays={"Bad": 0.02})
    real_write = ResultWriter.write

    def slow_write(self, destination: Path, text: str) -> None:
        time.sleep(0.2)
        real_write(self, destination, text)

    with patch.object(ResultWriter, "write", slow_write):
        with pytest.raises(AuthError):
            await run(source, tmp_path / "out", "bad-key", RunOptions(concurrency=2), translator=translator)

    assert written_files(tmp_path / "out") == ["A.php"]


@pytest.mark.asyncio
async def test_no_write_starts_after_auth_failure(tmp_path: Path):
    """Test that units finishing translation after an auth failure write nothing."""
    source = write_sources(tmp_path / "src", {"A.java": "class A {}", "Bad.java": "class Bad {}"})
    translator = FakeTranslator(failures={"Bad": FailureKind.AUTH})
    orchestrator = Orchestrator(source, tmp_path / "out", RunOptions(), translator)
    discovery = await orchestrator.discover()
    slots = asyncio.Semaphore(2)

    # Bad.java is translated first and aborts the run
    bad, good = sorted(discovery.pending, key=lambda pending: pending.unit.relative_path.stem != "Bad")
    await orchestrator._process(bad, discovery.reports, slots)
    await orchestrator._process(good, discovery.reports, slots)

    assert discovery.reports[good.index] is None
    assert not (tmp_path / "out").exists()
