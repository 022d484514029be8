"""Sink that records every emitted tuple to one CSV file per output channel."""
from __future__ import annotations

import csv
import json
import os
from datetime import datetime
from typing import Dict, IO, Optional, Sequence, Tuple

from lrb_core.channels import CHANNELS, Channel, get_channel


class ChannelRecorder:
    """Writes ``<channel>_<timestamp>.csv`` files under ``output_dir``."""

    def __init__(
        self,
        output_dir: str,
        channels: Sequence[Channel] = CHANNELS,
        flush_every: Optional[int] = None,
    ) -> None:
        self.output_dir = os.path.abspath(output_dir)
        self._channels: Tuple[Channel, ...] = tuple(channels)
        self._flush_every = self._normalize_flush_every(flush_every)
        self._rows_since_flush = 0
        self._files: Dict[str, IO[str]] = {}
        self._writers: Dict[str, csv.writer] = {}
        self.filenames: Dict[str, str] = {}
        self.rows_written: Dict[str, int] = {}
        self.metadata_filename: Optional[str] = None
        os.makedirs(self.output_dir, exist_ok=True)
        self._open_files()

    def emit(self, channel_name: str, values: Tuple[int, ...]) -> None:
        """Append one tuple to the channel's file."""
        writer = self._writers.get(channel_name)
        if writer is None:
            channel = get_channel(channel_name)
            raise KeyError(f"channel '{channel.name}' is not recorded by this sink")

        expected = len(get_channel(channel_name).fields)
        if len(values) != expected:
            raise ValueError(
                f"channel '{channel_name}' expects {expected} values, got {len(values)}"
            )
        writer.writerow(values)
        self.rows_written[channel_name] += 1
        self._after_write()

    def close(self) -> None:
        self._close_files()

    def flush(self) -> None:
        for f in self._files.values():
            f.flush()
        self._rows_since_flush = 0

    def __enter__(self) -> "ChannelRecorder":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    # ------------------------------------------------------------------
    def _open_files(self) -> None:
        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        for channel in self._channels:
            filename = os.path.join(self.output_dir, f"{channel.name}_{timestamp}.csv")
            f = open(filename, "w", newline="", encoding="utf-8")
            writer = csv.writer(f)
            writer.writerow(channel.fields)
            self._files[channel.name] = f
            self._writers[channel.name] = writer
            self.filenames[channel.name] = filename
            self.rows_written[channel.name] = 0
        self._write_metadata_file(timestamp)

    def _close_files(self) -> None:
        self._writers.clear()
        files, self._files = self._files, {}
        for f in files.values():
            try:
                f.flush()
            finally:
                f.close()

    def _write_metadata_file(self, timestamp: str) -> None:
        metadata = {
            "created": timestamp,
            "channels": [
                {
                    "name": channel.name,
                    "fields": list(channel.fields),
                    "file": os.path.basename(self.filenames[channel.name]),
                }
                for channel in self._channels
            ],
        }
        metadata_path = os.path.join(self.output_dir, f"channels_{timestamp}.meta.json")
        with open(metadata_path, "w", encoding="utf-8") as meta_file:
            json.dump(metadata, meta_file, indent=2)
        self.metadata_filename = metadata_path

    def _normalize_flush_every(self, value: Optional[int]) -> Optional[int]:
        if value is None:
            return None
        try:
            normalized = int(value)
        except (TypeError, ValueError):
            return None
        return normalized if normalized > 0 else None

    def _after_write(self) -> None:
        if self._flush_every is None:
            return
        self._rows_since_flush += 1
        if self._rows_since_flush >= self._flush_every:
            self.flush()
