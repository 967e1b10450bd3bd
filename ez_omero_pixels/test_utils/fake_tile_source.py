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
"""In memory tile source for tests.

Serves tiles cut from a (T, Z, C, Y, X) numpy array, records every fetch and
counts handle opens and closes. Failures can be injected on open and on any
fetch.
"""
from __future__ import annotations

import dataclasses
from typing import Any, List, Mapping, Optional, Set

from ez_omero_pixels import coordinates
from ez_omero_pixels import ez_pixels_errors
from ez_omero_pixels import pixel_types
from ez_omero_pixels import tile_source
import numpy as np


@dataclasses.dataclass(frozen=True)
class FetchCall:
  plane: tile_source.Plane
  x: int
  y: int
  width: int
  height: int
  context: Optional[Mapping[str, Any]] = None


class _FakeHandle:

  def __init__(self, handle_id: int):
    self.handle_id = handle_id


class FakeTileSource(tile_source.AbstractTileSource):
  """Tile source backed by a numpy array."""

  def __init__(
      self,
      pixels: np.ndarray,
      pixel_type: pixel_types.PixelType = pixel_types.PixelType.UINT16,
      byte_order: str = pixel_types.BIG_ENDIAN,
      fail_open: bool = False,
      fail_on_fetch: Optional[Set[int]] = None,
      fail_close: bool = False,
  ):
    """Constructor.

    Args:
      pixels: Voxels indexed [t, z, c, y, x].
      pixel_type: Type tiles are served as.
      byte_order: Byte order tiles are served in.
      fail_open: If True open() raises InstantiationError.
      fail_on_fetch: Zero based indexes of fetch calls raising DataSourceError.
      fail_close: If True close() releases the handle and raises
        DataSourceError.
    """
    if pixels.ndim != 5:
      raise ValueError('Expected pixels indexed [t, z, c, y, x].')
    self._pixels = pixels
    self._pixel_type = pixel_type
    self._byte_order = byte_order
    self._fail_open = fail_open
    self._fail_on_fetch = set() if fail_on_fetch is None else fail_on_fetch
    self._fail_close = fail_close
    self._open_handles = set()
    self.fetch_calls: List[FetchCall] = []
    self.open_count = 0
    self.close_count = 0

  @property
  def byte_order(self) -> str:
    return self._byte_order

  @property
  def extent(self) -> coordinates.ImageExtent:
    size_t, size_z, size_c, size_y, size_x = self._pixels.shape
    return coordinates.ImageExtent(size_x, size_y, size_c, size_z, size_t)

  @property
  def open_handle_count(self) -> int:
    return len(self._open_handles)

  def open(self) -> _FakeHandle:
    if self._fail_open:
      raise ez_pixels_errors.InstantiationError('Cannot create tile source.')
    self.open_count += 1
    handle = _FakeHandle(self.open_count)
    self._open_handles.add(handle)
    return handle

  def fetch(
      self,
      handle: Any,
      context: Optional[Mapping[str, Any]],
      plane: tile_source.Plane,
      x: int,
      y: int,
      width: int,
      height: int,
  ) -> tile_source.Tile:
    if handle not in self._open_handles:
      raise ez_pixels_errors.DataSourceError('Handle is not open.')
    call_index = len(self.fetch_calls)
    self.fetch_calls.append(
        FetchCall(plane, x, y, width, height, context)
    )
    if call_index in self._fail_on_fetch:
      raise ez_pixels_errors.DataSourceError(f'Fetch {call_index} failed.')
    region = self._pixels[
        plane.t, plane.z, plane.c, y : y + height, x : x + width
    ]
    if region.shape != (height, width):
      raise ez_pixels_errors.DataSourceError('Tile outside of image.')
    return tile_source.Tile.from_ndarray(
        plane, x, y, region, self._pixel_type, self._byte_order
    )

  def close(self, handle: Any) -> None:
    if handle not in self._open_handles:
      raise ez_pixels_errors.DataSourceError('Handle closed twice.')
    self._open_handles.remove(handle)
    self.close_count += 1
    if self._fail_close:
      raise ez_pixels_errors.DataSourceError('Cannot close tile source.')


def create_test_pixels(
    extent: coordinates.ImageExtent, dtype: Any = np.uint16
) -> np.ndarray:
  """Returns (T, Z, C, Y, X) array of voxel flat indexes modulo 65535."""
  shape = (
      extent.size_t,
      extent.size_z,
      extent.size_c,
      extent.size_y,
      extent.size_x,
  )
  count = int(np.prod(shape))
  return (np.arange(count, dtype=np.int64) % np.iinfo(np.uint16).max).astype(
      dtype
  ).reshape(shape)
