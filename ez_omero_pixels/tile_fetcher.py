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
"""Reads single bounded tiles through an open raw access session."""
from typing import Optional

from ez_omero_pixels import ez_pixels_errors
from ez_omero_pixels import ez_pixels_logging_factory
from ez_omero_pixels import raw_access_session
from ez_omero_pixels import tile_source

# Maximum tile width and height requested from the tile source. Bounds memory
# and network cost of a single request on the server.
MAX_TILE_EDGE = 5000

_READ_TILE_ERROR = 'Cannot read tile'
_READ_RAW_TILE_ERROR = 'Cannot read raw tile'


def _check_tile_dimensions(width: int, height: int, max_tile_edge: int) -> None:
  if not 0 < width <= max_tile_edge or not 0 < height <= max_tile_edge:
    raise ez_pixels_errors.InvalidTileDimensionError(
        f'Tile dimensions {width}x{height} are outside of [1, {max_tile_edge}].'
    )


def fetch_tile(
    session: raw_access_session.RawAccessSession,
    plane: tile_source.Plane,
    x: int,
    y: int,
    width: int,
    height: int,
    raw: bool = False,
    max_tile_edge: int = MAX_TILE_EDGE,
    logger: Optional[ez_pixels_logging_factory.AbstractLoggingInterface] = None,
) -> tile_source.Tile:
  """Reads one tile of a plane.

  Issues exactly one read against the tile source. Failed reads are not
  retried.

  Args:
    session: Open raw access session.
    plane: Plane to read from.
    x: X coordinate of the upper-left tile pixel in the plane.
    y: Y coordinate of the upper-left tile pixel in the plane.
    width: Tile width; at most max_tile_edge.
    height: Tile height; at most max_tile_edge.
    raw: True if the tile is read for its raw bytes; selects error message.
    max_tile_edge: Largest tile edge that may be requested.
    logger: Optional logger.

  Returns:
    Tile.

  Raises:
    InvalidTileDimensionError: Tile is empty or larger than max_tile_edge.
    SessionNotOpenError: Session is not open.
    AccessError: Tile source failed to read the tile.
    InvalidTileDataError: Tile source returned a tile of the wrong origin or
      geometry.
  """
  _check_tile_dimensions(width, height, max_tile_edge)
  location = {
      'c': plane.c,
      'z': plane.z,
      't': plane.t,
      'x': x,
      'y': y,
      'width': width,
      'height': height,
  }
  if logger is not None:
    logger.debug('Fetching tile', location)
  try:
    tile = session.fetch(plane, x, y, width, height)
  except ez_pixels_errors.DataSourceError as exp:
    msg = _READ_RAW_TILE_ERROR if raw else _READ_TILE_ERROR
    if logger is not None:
      logger.error(msg, location, exp)
    raise ez_pixels_errors.AccessError(
        f'{msg} at x={x}, y={y}, width={width}, height={height}'
        f' of plane c={plane.c}, z={plane.z}, t={plane.t}.'
    ) from exp
  if tile.plane != plane or tile.x != x or tile.y != y:
    raise ez_pixels_errors.InvalidTileDataError(
        f'Requested tile at x={x}, y={y} of {plane}; tile source returned'
        f' tile at x={tile.x}, y={tile.y} of {tile.plane}.'
    )
  if tile.width != width or tile.height != height:
    raise ez_pixels_errors.InvalidTileDataError(
        f'Requested {width}x{height} tile; tile source returned'
        f' {tile.width}x{tile.height} tile.'
    )
  return tile
