# Copyright 2023 Google LLC
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
# ==============================================================================
"""Scoped lifecycle of the remote handle used to read tiles.

A RawAccessSession holds at most one open tile source handle. Retrieval code
calls ensure_open() and remembers whether that call created the handle; only
the creator closes it. This lets a caller open the session once, run several
sequential retrievals that reuse the handle, and close it when done:

  with session:
    values = volume_assembler.read_values(extent, session)
    raw = volume_assembler.read_raw(extent, session, bpp=2)

Sessions are not thread safe. Concurrent retrievals must use separate sessions.
"""
from __future__ import annotations

import contextlib
from typing import Any, Iterator, Mapping, Optional

from ez_omero_pixels import ez_pixels_errors
from ez_omero_pixels import ez_pixels_logging_factory
from ez_omero_pixels import tile_source as tile_source_module


class RawAccessSession:
  """Holds the open handle of a tile source."""

  def __init__(
      self,
      source: tile_source_module.AbstractTileSource,
      context: Optional[Mapping[str, Any]] = None,
      logging_factory: Optional[
          ez_pixels_logging_factory.AbstractLoggingInterfaceFactory
      ] = None,
  ):
    """Constructor.

    Args:
      source: Tile source the session reads from.
      context: Optional request context forwarded with every fetch.
      logging_factory: The factory used to construct the session logger.
    """
    self._source = source
    self._context = None if context is None else dict(context)
    self._logging_factory = logging_factory
    self._logger = None
    self._handle = None
    self._is_open = False
    # ensure_open() results of nested with statements.
    self._entered = []

  @property
  def logger(self) -> ez_pixels_logging_factory.AbstractLoggingInterface:
    if self._logger is None:
      self._logger = ez_pixels_logging_factory.get_logger(
          self._logging_factory
      )
    return self._logger

  @property
  def source(self) -> tile_source_module.AbstractTileSource:
    return self._source

  @property
  def context(self) -> Optional[Mapping[str, Any]]:
    return self._context

  @property
  def is_open(self) -> bool:
    return self._is_open

  @property
  def handle(self) -> Any:
    if not self._is_open:
      raise ez_pixels_errors.SessionNotOpenError(
          'Raw access session is not open.'
      )
    return self._handle

  def ensure_open(self) -> bool:
    """Opens the tile source handle if it is not already open.

    Returns:
      True if this call opened the handle.

    Raises:
      InstantiationError: Tile source handle could not be created.
    """
    if self._is_open:
      return False
    try:
      self._handle = self._source.open()
    except ez_pixels_errors.InstantiationError as exp:
      self.logger.error('Cannot open raw access session', exp)
      raise
    self._is_open = True
    self.logger.debug('Opened raw access session')
    return True

  def close(self) -> None:
    """Releases the tile source handle; no-op if the session is closed."""
    if not self._is_open:
      return
    handle = self._handle
    self._handle = None
    self._is_open = False
    self._source.close(handle)
    self.logger.debug('Closed raw access session')

  def close_if_created(self, created: bool) -> None:
    """Closes the session if created is True.

    Args:
      created: Value returned by the ensure_open() call of the caller.
    """
    if created:
      self.close()

  def _close_after_error(self, created: bool) -> None:
    """Closes the session while another exception is propagating.

    A failure to close is logged; the propagating exception is left in place.

    Args:
      created: Value returned by the ensure_open() call of the caller.
    """
    try:
      self.close_if_created(created)
    except Exception as exp:  # pylint: disable=broad-exception-caught
      self.logger.error('Cannot close raw access session', exp)

  @contextlib.contextmanager
  def acquire(self) -> Iterator[RawAccessSession]:
    """Opens the session for the duration of a with block if needed.

    The session is closed when the block exits, normally or by exception,
    only if it was opened on entry. If the block raises, an error closing the
    session is logged and the block's exception propagates.

    Yields:
      The open session.
    """
    created = self.ensure_open()
    try:
      yield self
    except BaseException:
      self._close_after_error(created)
      raise
    self.close_if_created(created)

  def fetch(
      self,
      plane: tile_source_module.Plane,
      x: int,
      y: int,
      width: int,
      height: int,
  ) -> tile_source_module.Tile:
    """Reads one tile with the open handle.

    Raises:
      SessionNotOpenError: Session is not open.
      DataSourceError: Tile could not be read.
    """
    return self._source.fetch(
        self.handle, self._context, plane, x, y, width, height
    )

  def __enter__(self) -> RawAccessSession:
    self._entered.append(self.ensure_open())
    return self

  def __exit__(self, exc_type, exc_value, traceback) -> None:
    created = self._entered.pop()
    if exc_type is None:
      self.close_if_created(created)
    else:
      self._close_after_error(created)
