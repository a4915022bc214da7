"""
Module: session.session

Purpose:
    Presentation session: the orchestration surface over one open package.
    Opening a session verifies the package, takes the single-writer lock and
    builds both identifier registries with a full scan. Structural operations
    run inside transactions that snapshot the package directory and restore
    it (re-scanning the registries) when the operation fails.

Key Classes:
    - PresentationSession: open / edit / validate / save / close

Key Functions:
    - PresentationSession.open_directory(): Session over an extracted package
    - PresentationSession.open_archive(): Extract a .pptx and open it
    - PresentationSession.transaction(): Snapshot-and-restore context manager

Dependencies:
    - portalocker (via session.locking)
    - zipfile (via session.package_io)
    - shutil / tempfile (std): snapshots and work directories

Used By:
    - Library callers
"""

from __future__ import annotations

import logging
import shutil
import tempfile
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Callable, Generator, List, Mapping, Optional

from ..core.errors import ConfigurationError, DeckError, NotFoundError, PackageIOError, SlideOperationError, StructuralError
from ..core.models.results import SlideOperationResult
from ..core.models.validation import Finding, ValidationReport
from ..core.package import PRESENTATION_PART, PackageLayout
from ..core.utils.xml import parse_part, write_part
from ..editing.cascade import SlideInsertionCascade
from ..editing.slide_list import SlideList
from ..editing.templates import SlideTemplate
from ..editing.timing_editor import TimingTreeEditor, validate_timing
from ..parsing.slide_parser import SlideView, parse_slide
from ..registry.relationships import RelationshipRegistry
from ..registry.shapes import ShapeIdRegistry
from .config import SessionConfig
from .locking import PackageLock
from .package_io import compress_package, extract_package

logger = logging.getLogger(__name__)


class PresentationSession:
    """
    One open presentation package.

    Registries are owned by the session: built on open, discarded on close.

    Example:
        >>> with PresentationSession.open_archive(Path("deck.pptx")) as session:
        ...     session.add_slide(1, title="Agenda")
        ...     session.copy_slide(source_index=2, position=3)
        ...     session.save(Path("deck-edited.pptx"))
    """

    def __init__(
        self,
        package_dir: Path,
        config: Optional[SessionConfig] = None,
        *,
        source_archive: Optional[Path] = None,
        owned_dir: Optional[Path] = None,
    ):
        self.config = config or SessionConfig()
        self.layout = PackageLayout(Path(package_dir))
        self.source_archive = source_archive
        self._owned_dir = owned_dir
        self._modified = False
        self._closed = False
        self._transactions: List[str] = []

        if not self.layout.presentation_path.exists():
            raise StructuralError(f"Not a presentation package: {PRESENTATION_PART} missing", part=PRESENTATION_PART)

        self._lock = PackageLock(self.layout.root) if self.config.lock_package else None
        if self._lock is not None:
            self._lock.acquire()

        self.shapes = ShapeIdRegistry(self.layout)
        self.relationships = RelationshipRegistry(self.layout, self.config.editing)
        try:
            self._scan()
        except DeckError as e:
            self._release()
            raise ConfigurationError(f"Failed to initialize registries: {e}") from e

        self.cascade = SlideInsertionCascade(self.layout, self.shapes, self.relationships, self.config.editing)
        logger.info(
            f"Opened package {self.layout.root} ({self.slide_count} slides, "
            f"{len(self.shapes)} shape ids, {len(self.relationships)} relationship ids)"
        )

    # ─────────────────────────────────────────────────────────────────────────
    # Opening
    # ─────────────────────────────────────────────────────────────────────────

    @classmethod
    def open_directory(cls, path: Path, config: Optional[SessionConfig] = None) -> PresentationSession:
        """
        Open an extracted package in place.

        Raises:
            NotFoundError: If the directory does not exist.
            StructuralError: If it has no presentation part.
            PackageLockedError: If another session holds the package.
        """
        path = Path(path)
        if not path.is_dir():
            raise NotFoundError(f"Package directory not found: {path}")
        return cls(path, config)

    @classmethod
    def open_archive(cls, archive: Path, config: Optional[SessionConfig] = None) -> PresentationSession:
        """
        Extract an archive into a work directory and open it.

        The work directory is removed on close().
        """
        config = config or SessionConfig()
        archive = Path(archive)
        if not archive.is_file():
            raise NotFoundError(f"Archive not found: {archive}")
        work_root = _make_temp_dir("deck_", config.work_dir)
        package_dir = work_root / "package"
        try:
            extract_package(archive, package_dir)
            return cls(package_dir, config, source_archive=archive, owned_dir=work_root)
        except BaseException:
            shutil.rmtree(work_root, ignore_errors=True)
            raise

    def _scan(self) -> None:
        self.shapes.scan()
        self.relationships.scan()

    # ─────────────────────────────────────────────────────────────────────────
    # State
    # ─────────────────────────────────────────────────────────────────────────

    @property
    def package_dir(self) -> Path:
        return self.layout.root

    @property
    def slide_count(self) -> int:
        return len(self.layout.slide_indices())

    @property
    def is_modified(self) -> bool:
        return self._modified

    @property
    def is_closed(self) -> bool:
        return self._closed

    @property
    def active_transactions(self) -> List[str]:
        return list(self._transactions)

    def _check_open(self) -> None:
        if self._closed:
            raise DeckError("Session is closed")

    def slide_view(self, index: int) -> SlideView:
        """Read-only view of slide ``index``."""
        self._check_open()
        if index not in self.layout.slide_indices():
            raise NotFoundError(f"Slide {index} does not exist")
        part = PackageLayout.slide_part(index)
        return parse_slide(parse_part(self.layout.slide_path(index), part), index)

    # ─────────────────────────────────────────────────────────────────────────
    # Transactions
    # ─────────────────────────────────────────────────────────────────────────

    @contextmanager
    def transaction(self, name: str) -> Generator[None, None, None]:
        """
        Run a block with snapshot rollback.

        The package directory is copied before the block runs. If the block
        raises, the copy is restored, the registries are re-scanned and the
        exception propagates. Nested transactions share the outermost
        snapshot.
        """
        self._check_open()
        outermost = not self._transactions
        snapshot: Optional[Path] = None
        if outermost and self.config.snapshot_transactions:
            snapshot = self._take_snapshot()
        self._transactions.append(name)
        try:
            yield
        except Exception as e:
            if snapshot is not None:
                self._restore_snapshot(snapshot)
                if isinstance(e, SlideOperationError):
                    e.possibly_inconsistent = False
                logger.warning(f"Rolled back '{name}': {e}")
            raise
        finally:
            self._transactions.pop()
            if snapshot is not None:
                shutil.rmtree(snapshot.parent, ignore_errors=True)

    def _take_snapshot(self) -> Path:
        target = _make_temp_dir("deck_snapshot_", self.config.work_dir) / "package"
        try:
            shutil.copytree(self.layout.root, target)
        except OSError as e:
            shutil.rmtree(target.parent, ignore_errors=True)
            raise PackageIOError(f"Failed to snapshot package: {e}", path=str(self.layout.root)) from e
        logger.debug(f"Snapshot of {self.layout.root} taken at {target}")
        return target

    def _restore_snapshot(self, snapshot: Path) -> None:
        try:
            shutil.rmtree(self.layout.root)
            shutil.copytree(snapshot, self.layout.root)
        except OSError as e:
            raise PackageIOError(f"Failed to restore snapshot: {e}", path=str(self.layout.root)) from e
        self._scan()

    def _run(self, name: str, operation: Callable[[], SlideOperationResult]) -> SlideOperationResult:
        with self.transaction(name):
            result = operation()
        self._modified = True
        return result

    # ─────────────────────────────────────────────────────────────────────────
    # Structural operations
    # ─────────────────────────────────────────────────────────────────────────

    def add_slide(self, position: int, title: Optional[str] = None) -> SlideOperationResult:
        """Insert a blank slide at ``position`` (1-based)."""
        return self._run("add_slide", lambda: self.cascade.insert_blank_slide(position, title))

    def copy_slide(self, source_index: int, position: int, title: Optional[str] = None) -> SlideOperationResult:
        """Insert a copy of slide ``source_index`` at ``position``."""
        return self._run("copy_slide", lambda: self.cascade.insert_copied_slide(position, source_index, title))

    def add_template_slide(
        self,
        position: int,
        template: SlideTemplate,
        data: Optional[Mapping[str, Any]] = None,
    ) -> SlideOperationResult:
        """Insert a slide built by ``template``."""
        return self._run("add_template_slide", lambda: self.cascade.insert_template_slide(position, template, data))

    def remove_slide(self, index: int) -> SlideOperationResult:
        """Delete slide ``index`` and renumber the slides after it."""
        return self._run("remove_slide", lambda: self.cascade.remove_slide(index))

    @contextmanager
    def edit_timing(self, index: int) -> Generator[TimingTreeEditor, None, None]:
        """
        Edit the timing tree of slide ``index``.

        The slide is written back when the block completes without error.

        Example:
            >>> with session.edit_timing(2) as timing:
            ...     trigger = timing.create_click_trigger()
            ...     timing.bind_effect(trigger, shape_id=4)
        """
        self._check_open()
        if index not in self.layout.slide_indices():
            raise NotFoundError(f"Slide {index} does not exist")
        path = self.layout.slide_path(index)
        with self.transaction("edit_timing"):
            document = parse_part(path, PackageLayout.slide_part(index))
            yield TimingTreeEditor(document, self.config.editing)
            write_part(document, path)
        self._modified = True

    # ─────────────────────────────────────────────────────────────────────────
    # Validation and output
    # ─────────────────────────────────────────────────────────────────────────

    def validate(self) -> ValidationReport:
        """
        Run every integrity check: shape ids, relationship ids and targets,
        slide list and numbering, and each slide's timing tree.

        Never raises for integrity problems.
        """
        self._check_open()
        report = self.shapes.validate().merge(self.relationships.validate())
        try:
            report = report.merge(SlideList.load(self.layout, self.relationships, self.config.editing).validate())
        except StructuralError as e:
            report = report.merge(_structural_report(e))
        for index in self.layout.slide_indices():
            part = PackageLayout.slide_part(index)
            try:
                document = parse_part(self.layout.slide_path(index), part)
            except StructuralError:
                continue  # reported by the shape registry
            report = report.merge(validate_timing(document, part))
        logger.debug(f"Validation: {len(report.errors)} errors, {len(report.warnings)} warnings")
        return report

    def save(self, output_path: Optional[Path] = None) -> Path:
        """
        Write the package.

        With ``output_path`` the package is compressed into that archive.
        Without it, an archive session writes back to its source archive and
        a directory session (whose parts are already on disk) is left as is.

        Raises:
            StructuralError: If validate_on_save is set and the package has
                integrity errors.
        """
        self._check_open()
        if self.config.validate_on_save:
            report = self.validate()
            if not report.is_valid:
                raise StructuralError(f"Refusing to save invalid package:\n{report.summary()}")

        target = Path(output_path) if output_path is not None else self.source_archive
        if target is None:
            logger.info(f"Saved package in place at {self.layout.root}")
            self._modified = False
            return self.layout.root
        compress_package(self.layout.root, target)
        self._modified = False
        logger.info(f"Saved package to {target}")
        return target

    def close(self) -> None:
        """Release the lock and remove the work directory of an archive session."""
        if self._closed:
            return
        self._closed = True
        self._release()
        logger.info(f"Closed package {self.layout.root}")

    def _release(self) -> None:
        if self._lock is not None:
            self._lock.release()
        if self._owned_dir is not None:
            shutil.rmtree(self._owned_dir, ignore_errors=True)

    def __enter__(self) -> PresentationSession:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


def _make_temp_dir(prefix: str, parent: Optional[Path]) -> Path:
    if parent is not None:
        parent.mkdir(parents=True, exist_ok=True)
    return Path(tempfile.mkdtemp(prefix=prefix, dir=str(parent) if parent is not None else None))


def _structural_report(error: StructuralError) -> ValidationReport:
    return ValidationReport.of([Finding.error("malformed-part", str(error), error.part)])
