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
"""Assembles 5D sub-volumes of pixel data from bounded tiles.

A tile source can only serve rectangles of a single (C, Z, T) plane whose edges
do not exceed the maximum tile edge. To read a sub-volume the assembler:

  1. resolves the requested bounds against the image extent,
  2. opens the raw access session unless the caller already holds it open,
  3. allocates an output buffer sized exactly to the resolved bounds,
  4. walks the planes (T outermost, then Z, then C) and, for each plane, the
     grid of tiles covering the requested XY region, copying every fetched
     tile into the buffer at its offset within the plane,
  5. closes the session if it was opened in step 2, on success and on failure.

Float reads return a (T, Z, C, Y, X) float64 array. Raw reads return a
(T, Z, C, Y * X * bpp) uint8 array; each [t, z, c] row holds the plane's bytes
at index (y * width + x) * bpp + i.
"""
import dataclasses
from typing import Dict, Iterator, Optional, Tuple

from ez_omero_pixels import coordinates
from ez_omero_pixels import ez_pixels_errors
from ez_omero_pixels import ez_pixels_logging_factory
from ez_omero_pixels import raw_access_session
from ez_omero_pixels import tile_fetcher
from ez_omero_pixels import tile_source
import numpy as np

MAX_TILE_EDGE = tile_fetcher.MAX_TILE_EDGE

_Logger = ez_pixels_logging_factory.AbstractLoggingInterface


@dataclasses.dataclass(frozen=True)
class TileRegion:
  """A tile of a plane's requested region, relative to the region origin."""

  rel_x: int
  rel_y: int
  width: int
  height: int


def iter_tile_grid(
    width: int, height: int, max_tile_edge: int = MAX_TILE_EDGE
) -> Iterator[TileRegion]:
  """Generates the tiles covering a width x height region.

  Args:
    width: Region width.
    height: Region height.
    max_tile_edge: Largest tile edge.

  Yields:
    Tiles in X-major order; edge tiles are clipped to the region.
  """
  if max_tile_edge < 1:
    raise ez_pixels_errors.InvalidTileDimensionError(
        f'Maximum tile edge must be positive; found {max_tile_edge}.'
    )
  for rel_x in range(0, width, max_tile_edge):
    tile_width = min(max_tile_edge, width - rel_x)
    for rel_y in range(0, height, max_tile_edge):
      tile_height = min(max_tile_edge, height - rel_y)
      yield TileRegion(rel_x, rel_y, tile_width, tile_height)


def iter_planes(
    bounds: coordinates.Bounds,
) -> Iterator[Tuple[int, int, int, tile_source.Plane]]:
  """Generates (t, z, c) buffer indexes with their plane in the image.

  Args:
    bounds: Resolved bounds.

  Yields:
    Tuple[t index, z index, c index, plane]; T outermost, C innermost.
  """
  start = bounds.start
  size = bounds.size
  for t in range(size.t):
    for z in range(size.z):
      for c in range(size.c):
        yield t, z, c, tile_source.Plane(
            c=start.c + c, z=start.z + z, t=start.t + t
        )


def _bounds_structure(bounds: coordinates.Bounds) -> Dict[str, str]:
  return {
      'start': str(dataclasses.astuple(bounds.start)),
      'size': str(dataclasses.astuple(bounds.size)),
  }


def _resolve(
    extent: coordinates.ImageExtent,
    axis_bounds: Tuple[coordinates.AxisBounds, ...],
    logger: _Logger,
) -> coordinates.Bounds:
  bounds = coordinates.resolve_bounds(extent, *axis_bounds)
  if bounds.is_empty:
    logger.warning(
        'Requested bounds select no voxels', _bounds_structure(bounds)
    )
  return bounds


def _read_plane(
    session: raw_access_session.RawAccessSession,
    plane: tile_source.Plane,
    bounds: coordinates.Bounds,
    max_tile_edge: int,
    raw: bool,
    logger: _Logger,
) -> Iterator[Tuple[TileRegion, tile_source.Tile]]:
  """Fetches the tiles covering the requested XY region of a plane."""
  start = bounds.start
  for region in iter_tile_grid(bounds.size.x, bounds.size.y, max_tile_edge):
    tile = tile_fetcher.fetch_tile(
        session,
        plane,
        start.x + region.rel_x,
        start.y + region.rel_y,
        region.width,
        region.height,
        raw=raw,
        max_tile_edge=max_tile_edge,
        logger=logger,
    )
    yield region, tile


def read_values(
    extent: coordinates.ImageExtent,
    session: raw_access_session.RawAccessSession,
    x_bounds: coordinates.AxisBounds = None,
    y_bounds: coordinates.AxisBounds = None,
    c_bounds: coordinates.AxisBounds = None,
    z_bounds: coordinates.AxisBounds = None,
    t_bounds: coordinates.AxisBounds = None,
    max_tile_edge: int = MAX_TILE_EDGE,
    logger: Optional[_Logger] = None,
) -> np.ndarray:
  """Returns voxel values of a sub-volume as float64.

  Args:
    extent: Extent of the image pixels are read from.
    session: Raw access session. Left open if it was open on entry.
    x_bounds: Optional inclusive [min, max] X range; whole axis if None.
    y_bounds: Optional inclusive [min, max] Y range; whole axis if None.
    c_bounds: Optional inclusive [min, max] C range; whole axis if None.
    z_bounds: Optional inclusive [min, max] Z range; whole axis if None.
    t_bounds: Optional inclusive [min, max] T range; whole axis if None.
    max_tile_edge: Largest tile edge requested from the tile source.
    logger: Optional logger.

  Returns:
    Array indexed [t, z, c, y, x] relative to the resolved bounds start.

  Raises:
    InstantiationError: Session could not be opened.
    AccessError: A tile could not be read.
  """
  if logger is None:
    logger = ez_pixels_logging_factory.get_logger()
  bounds = _resolve(
      extent, (x_bounds, y_bounds, c_bounds, z_bounds, t_bounds), logger
  )
  logger.info('Reading pixel values', _bounds_structure(bounds))
  size = bounds.size
  with session.acquire():
    values = np.zeros(
        (size.t, size.z, size.c, size.y, size.x), dtype=np.float64
    )
    for t, z, c, plane in iter_planes(bounds):
      plane_values = values[t, z, c]
      for region, tile in _read_plane(
          session, plane, bounds, max_tile_edge, False, logger
      ):
        plane_values[
            region.rel_y : region.rel_y + region.height,
            region.rel_x : region.rel_x + region.width,
        ] = tile.values
  return values


def read_raw(
    extent: coordinates.ImageExtent,
    session: raw_access_session.RawAccessSession,
    bpp: int,
    x_bounds: coordinates.AxisBounds = None,
    y_bounds: coordinates.AxisBounds = None,
    c_bounds: coordinates.AxisBounds = None,
    z_bounds: coordinates.AxisBounds = None,
    t_bounds: coordinates.AxisBounds = None,
    max_tile_edge: int = MAX_TILE_EDGE,
    logger: Optional[_Logger] = None,
) -> np.ndarray:
  """Returns packed raw bytes of a sub-volume.

  Bytes are copied verbatim; interpreting them requires the pixel type's
  storage width and byte order.

  Args:
    extent: Extent of the image pixels are read from.
    session: Raw access session. Left open if it was open on entry.
    bpp: Bytes per pixel; should match the pixel type's storage width.
    x_bounds: Optional inclusive [min, max] X range; whole axis if None.
    y_bounds: Optional inclusive [min, max] Y range; whole axis if None.
    c_bounds: Optional inclusive [min, max] C range; whole axis if None.
    z_bounds: Optional inclusive [min, max] Z range; whole axis if None.
    t_bounds: Optional inclusive [min, max] T range; whole axis if None.
    max_tile_edge: Largest tile edge requested from the tile source.
    logger: Optional logger.

  Returns:
    uint8 array indexed [t, z, c, (y * width + x) * bpp + i].

  Raises:
    InvalidBytesPerPixelError: bpp is not positive.
    InstantiationError: Session could not be opened.
    AccessError: A tile could not be read.
  """
  if bpp < 1:
    raise ez_pixels_errors.InvalidBytesPerPixelError(
        f'Bytes per pixel must be positive; found {bpp}.'
    )
  if logger is None:
    logger = ez_pixels_logging_factory.get_logger()
  bounds = _resolve(
      extent, (x_bounds, y_bounds, c_bounds, z_bounds, t_bounds), logger
  )
  logger.info('Reading raw pixels', _bounds_structure(bounds), {'bpp': bpp})
  size = bounds.size
  with session.acquire():
    raw = np.zeros(
        (size.t, size.z, size.c, size.y * size.x * bpp), dtype=np.uint8
    )
    for t, z, c, plane in iter_planes(bounds):
      plane_rows = raw[t, z, c].reshape((size.y, size.x * bpp))
      for region, tile in _read_plane(
          session, plane, bounds, max_tile_edge, True, logger
      ):
        plane_rows[
            region.rel_y : region.rel_y + region.height,
            region.rel_x * bpp : (region.rel_x + region.width) * bpp,
        ] = tile.raw_rows(bpp)
  return raw
