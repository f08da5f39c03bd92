"""Tests for the subprocess-based LaTeX renderer, using python as a stand-in toolchain."""

import asyncio
import shlex
import sys

import pytest

from redgarden.config import Settings
from redgarden.core.invoice_document import build_invoice_context
from redgarden.core.renderer import LatexRenderer
from redgarden.errors import RenderError

PYTHON = shlex.quote(sys.executable)

FAKE_PDFLATEX = (
    f"{PYTHON} -c \"import pathlib, sys; src = pathlib.Path(sys.argv[1]); "
    f"src.with_suffix('.pdf').write_bytes(b'%PDF-1.4 ' + src.read_bytes()[:40])\" {{filename}}"
)


def _context(settings: Settings, **overrides) -> dict:
    booking = {"id": "b1b2b3b4-0000", "user_name": "Meera", "user_mobile": "99", "notes": "Decor"}
    ctx = build_invoice_context(booking, {}, settings)
    ctx.update(overrides)
    return ctx


def _renderer(settings: Settings, command: str, timeout: float = 20.0) -> LatexRenderer:
    return LatexRenderer(settings.invoice_template_path, command, timeout)


def test_render_returns_output_bytes(settings: Settings) -> None:
    """The command runs in the scratch dir and its PDF is returned."""
    data = asyncio.run(_renderer(settings, FAKE_PDFLATEX).render("invoice-b1", _context(settings)))
    assert data.startswith(b"%PDF-1.4 \\documentclass")


def test_logo_is_staged_into_workdir(settings: Settings, tmp_path) -> None:
    """An existing logo file is copied next to the source under a safe name."""
    logo = tmp_path / "Red Garden_Logo.PNG"
    logo.write_bytes(b"\x89PNG")
    workdir = tmp_path / "work"
    workdir.mkdir()
    renderer = _renderer(settings, FAKE_PDFLATEX)

    assert renderer._stage_logo(str(logo), workdir) == "logo.png"
    assert (workdir / "logo.png").read_bytes() == b"\x89PNG"
    assert renderer._stage_logo(str(tmp_path / "missing.png"), workdir) == ""


def test_non_zero_exit_is_render_error(settings: Settings) -> None:
    """A failing toolchain raises RenderError."""
    renderer = _renderer(settings, f"{PYTHON} -c \"import sys; sys.exit(3)\"")
    with pytest.raises(RenderError, match="status 3"):
        asyncio.run(renderer.render("invoice-x", _context(settings)))


def test_missing_output_is_render_error(settings: Settings) -> None:
    """Exit 0 without a PDF is still a failure."""
    renderer = _renderer(settings, f"{PYTHON} -c \"pass\"")
    with pytest.raises(RenderError, match="not generated"):
        asyncio.run(renderer.render("invoice-x", _context(settings)))


def test_timeout_kills_renderer(settings: Settings) -> None:
    """A hung toolchain is killed after the wall-clock timeout."""
    renderer = _renderer(settings, f"{PYTHON} -c \"import time; time.sleep(30)\"", timeout=0.5)
    with pytest.raises(RenderError, match="timed out"):
        asyncio.run(renderer.render("invoice-x", _context(settings)))


def test_missing_executable_is_render_error(settings: Settings) -> None:
    """An unknown command cannot start and is reported as RenderError."""
    renderer = _renderer(settings, "definitely-not-a-latex-binary {filename}")
    with pytest.raises(RenderError, match="could not start"):
        asyncio.run(renderer.render("invoice-x", _context(settings)))


def _recording_cleanup(marker) -> str:
    return (
        f"{PYTHON} -c \"import pathlib, sys; pathlib.Path(sys.argv[1]).write_text(sys.argv[2])\" "
        f"{shlex.quote(str(marker))} {{name}}"
    )


def test_timeout_runs_cleanup_for_named_render(settings: Settings, tmp_path) -> None:
    """After a timeout the cleanup command receives the render's name."""
    marker = tmp_path / "removed.txt"
    renderer = LatexRenderer(
        settings.invoice_template_path,
        f"{PYTHON} -c \"import time; time.sleep(30)\" {{name}}",
        0.5,
        cleanup_command=_recording_cleanup(marker),
    )

    with pytest.raises(RenderError, match="timed out"):
        asyncio.run(renderer.render("invoice-x", _context(settings)))

    assert marker.read_text().startswith("redgarden-render-")


def test_cleanup_skipped_when_command_is_unnamed(settings: Settings, tmp_path) -> None:
    """Nothing to remove when the command never used a name."""
    marker = tmp_path / "removed.txt"
    renderer = LatexRenderer(
        settings.invoice_template_path,
        f"{PYTHON} -c \"import time; time.sleep(30)\"",
        0.5,
        cleanup_command=_recording_cleanup(marker),
    )

    with pytest.raises(RenderError, match="timed out"):
        asyncio.run(renderer.render("invoice-x", _context(settings)))

    assert not marker.exists()


def test_default_command_names_its_container(settings: Settings) -> None:
    """The docker default can be removed by name after a timeout."""
    assert "--name {name}" in settings.invoice_render_command
    assert settings.invoice_render_cleanup_command == "docker rm -f {name}"
