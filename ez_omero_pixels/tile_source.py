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
"""Tiles and the interface of the remote resource serving them.

A tile source serves bounded rectangular regions of a single (C, Z, T) plane.
Access goes through a stateful handle: open() acquires it, fetch() reads tiles
with it and close() releases it. Handles are expensive to create and are not
safe for concurrent use.
"""
from __future__ import annotations

import abc
import dataclasses
from typing import Any, Mapping, Optional

from ez_omero_pixels import ez_pixels_errors
from ez_omero_pixels import pixel_types
import numpy as np


@dataclasses.dataclass(frozen=True)
class Plane:
  """Fixed (C, Z, T) position of a 2D XY plane."""

  c: int
  z: int
  t: int


class Tile:
  """Rectangular region of one plane as returned by a tile source."""

  def __init__(
      self,
      plane: Plane,
      x: int,
      y: int,
      width: int,
      height: int,
      raw: bytes,
      pixel_type: pixel_types.PixelType,
      byte_order: str = pixel_types.BIG_ENDIAN,
  ):
    """Constructor.

    Args:
      plane: Plane the tile belongs to.
      x: X coordinate of the upper-left tile pixel in the plane.
      y: Y coordinate of the upper-left tile pixel in the plane.
      width: Width of the tile.
      height: Height of the tile.
      raw: Row-major pixel bytes of the tile.
      pixel_type: Type of the stored pixels.
      byte_order: Byte order of the stored pixels.
    """
    self._plane = plane
    self._x = x
    self._y = y
    self._width = width
    self._height = height
    self._raw = bytes(raw)
    self._pixel_type = pixel_type
    self._byte_order = byte_order
    self._values = None

  @classmethod
  def from_ndarray(
      cls,
      plane: Plane,
      x: int,
      y: int,
      values: np.ndarray,
      pixel_type: pixel_types.PixelType,
      byte_order: str = pixel_types.BIG_ENDIAN,
  ) -> Tile:
    """Returns tile storing a (height, width) array as pixel_type bytes."""
    height, width = values.shape
    raw = np.ascontiguousarray(values, pixel_type.dtype(byte_order)).tobytes()
    return Tile(plane, x, y, width, height, raw, pixel_type, byte_order)

  @property
  def plane(self) -> Plane:
    return self._plane

  @property
  def x(self) -> int:
    return self._x

  @property
  def y(self) -> int:
    return self._y

  @property
  def width(self) -> int:
    return self._width

  @property
  def height(self) -> int:
    return self._height

  @property
  def pixel_type(self) -> pixel_types.PixelType:
    return self._pixel_type

  @property
  def raw(self) -> bytes:
    return self._raw

  @property
  def values(self) -> np.ndarray:
    """Returns (height, width) float64 voxel values of the tile."""
    if self._values is None:
      self._values = pixel_types.raw_to_ndarray(
          self._raw,
          self._width,
          self._height,
          self._pixel_type,
          self._byte_order,
      ).astype(np.float64)
    return self._values

  def get_pixel_value(self, x: int, y: int) -> float:
    """Returns value of the voxel at tile local (x, y)."""
    return float(self.values[y, x])

  def get_raw_value(self, index: int) -> int:
    """Returns raw byte at (x + y * width) * bpp + i."""
    return self._raw[index]

  def raw_rows(self, bpp: int) -> np.ndarray:
    """Returns tile bytes as (height, width * bpp) uint8 rows.

    Args:
      bpp: Bytes per pixel the caller reads the tile with.

    Raises:
      InvalidTileDataError: Tile holds fewer than width * height * bpp bytes.
    """
    row_length = self._width * bpp
    expected = row_length * self._height
    if len(self._raw) < expected:
      raise ez_pixels_errors.InvalidTileDataError(
          f'Tile holds {len(self._raw)} bytes; {expected} bytes are required'
          f' to read {self._width}x{self._height} pixels at {bpp} bytes per'
          ' pixel.'
      )
    return np.frombuffer(self._raw, np.uint8, count=expected).reshape(
        (self._height, row_length)
    )


class AbstractTileSource(metaclass=abc.ABCMeta):
  """Remote resource serving the tiles of one image's pixels."""

  @property
  @abc.abstractmethod
  def byte_order(self) -> str:
    """Byte order of the raw pixel bytes in served tiles."""

  @abc.abstractmethod
  def open(self) -> Any:
    """Acquires a handle to read tiles with.

    Returns:
      Source specific handle passed to fetch() and close().

    Raises:
      InstantiationError: Handle could not be created.
    """

  @abc.abstractmethod
  def fetch(
      self,
      handle: Any,
      context: Optional[Mapping[str, Any]],
      plane: Plane,
      x: int,
      y: int,
      width: int,
      height: int,
  ) -> Tile:
    """Reads one tile.

    Args:
      handle: Handle returned by open().
      context: Optional source specific request context, e.g. OMERO group.
      plane: Plane to read from.
      x: X coordinate of the upper-left tile pixel.
      y: Y coordinate of the upper-left tile pixel.
      width: Tile width.
      height: Tile height.

    Returns:
      Tile.

    Raises:
      DataSourceError: Tile could not be read.
    """

  @abc.abstractmethod
  def close(self, handle: Any) -> None:
    """Releases a handle returned by open()."""
