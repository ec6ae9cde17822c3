"""Process supervisor: owns the live encoder process of every stream."""

import asyncio
import logging
from dataclasses import dataclass
from pathlib import Path

from streambridge.errors.exceptions import LaunchError
from streambridge.models.enums import StreamQuality
from streambridge.services.encoder import build_encoder_args, output_paths

logger = logging.getLogger(__name__)

# Seconds to wait for encoders to exit on shutdown before killing them.
_SHUTDOWN_GRACE = 5.0


@dataclass(frozen=True)
class LaunchResult:
    hls_path: str
    dash_path: str


class ProcessSupervisor:
    """Registry of running encoder processes, at most one per stream id.

    The mapping is touched only by the methods below, each of which updates it
    without awaiting in between, so every check-and-update runs atomically on
    the event loop. An id is reserved in ``_starting`` while its process is
    being spawned.
    """

    def __init__(self, encoder_binary: str = "ffmpeg"):
        self.encoder_binary = encoder_binary
        self._processes: dict[str, asyncio.subprocess.Process] = {}
        self._starting: set[str] = set()
        self._watchers: set[asyncio.Task] = set()

    async def launch(
        self,
        stream_id: str,
        source_url: str,
        quality: StreamQuality | str,
        output_dir: Path,
    ) -> LaunchResult:
        """Spawn an encoder for ``stream_id`` and return its manifest paths.

        Returns as soon as the process is spawned; manifest readiness is up to
        the consumer to poll for.
        """
        if stream_id in self._processes or stream_id in self._starting:
            raise LaunchError(stream_id, "an encoder is already running for this stream")

        paths = output_paths(stream_id, Path(output_dir))
        args = build_encoder_args(stream_id, source_url, quality, paths)

        self._starting.add(stream_id)
        try:
            try:
                await asyncio.to_thread(paths.hls_dir.mkdir, parents=True, exist_ok=True)
                await asyncio.to_thread(paths.dash_dir.mkdir, parents=True, exist_ok=True)
            except OSError as exc:
                raise LaunchError(stream_id, f"cannot create output directories: {exc}") from exc

            try:
                process = await asyncio.create_subprocess_exec(
                    self.encoder_binary,
                    *args,
                    stdin=asyncio.subprocess.DEVNULL,
                    stdout=asyncio.subprocess.DEVNULL,
                    stderr=asyncio.subprocess.PIPE,
                    start_new_session=True,
                )
            except (OSError, ValueError) as exc:
                # ValueError: an argument the OS cannot take, e.g. an embedded NUL
                raise LaunchError(stream_id, f"cannot spawn {self.encoder_binary}: {exc}") from exc

            self._processes[stream_id] = process
        finally:
            self._starting.discard(stream_id)

        watcher = asyncio.create_task(self._watch(stream_id, process), name=f"encoder-watch-{stream_id}")
        self._watchers.add(watcher)
        watcher.add_done_callback(self._watchers.discard)

        logger.info(
            "Encoder started for stream %s (pid=%s, quality=%s)",
            stream_id, process.pid, quality,
        )
        return LaunchResult(hls_path=str(paths.hls_manifest), dash_path=str(paths.dash_manifest))

    def terminate(self, stream_id: str) -> bool:
        """Send SIGTERM to the stream's encoder and forget it.

        Returns False when no process is registered. Does not wait for the exit;
        the watcher task reaps it.
        """
        process = self._processes.pop(stream_id, None)
        if process is None:
            return False
        try:
            process.terminate()
        except ProcessLookupError:
            logger.debug("Encoder for stream %s had already exited", stream_id)
        else:
            logger.info("Sent SIGTERM to encoder for stream %s (pid=%s)", stream_id, process.pid)
        return True

    def is_live(self, stream_id: str) -> bool:
        return stream_id in self._processes

    def live_ids(self) -> set[str]:
        return set(self._processes)

    def live_count(self) -> int:
        return len(self._processes)

    async def shutdown(self) -> None:
        """Terminate every encoder and wait briefly for them to exit."""
        processes = list(self._processes.values())
        for stream_id in list(self._processes):
            self.terminate(stream_id)
        if not processes:
            return

        try:
            await asyncio.wait_for(
                asyncio.gather(*(p.wait() for p in processes)),
                timeout=_SHUTDOWN_GRACE,
            )
        except asyncio.TimeoutError:
            for process in processes:
                if process.returncode is None:
                    logger.warning("Killing encoder pid=%s after shutdown grace period", process.pid)
                    process.kill()
        logger.info("Supervisor shut down %d encoder(s)", len(processes))

    async def _watch(self, stream_id: str, process: asyncio.subprocess.Process) -> None:
        """Drain encoder stderr, reap the exit and drop the mapping entry."""
        if process.stderr is not None:
            async for line in process.stderr:
                logger.debug("encoder[%s]: %s", stream_id, line.decode(errors="replace").rstrip())
        returncode = await process.wait()

        if self._processes.get(stream_id) is process:
            # Nobody asked this one to stop.
            del self._processes[stream_id]
            logger.warning("Encoder for stream %s exited unexpectedly (code=%s)", stream_id, returncode)
        else:
            logger.info("Encoder for stream %s exited (code=%s)", stream_id, returncode)
