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
"""Pixels of an image in a remote OMERO repository.

The class layout is as follows:
Pixels: the 5D (X, Y, C, Z, T) pixel grid of an image together with the
    metadata needed to read it.
  |--> PixelsMetadata: sizes, pixel type and physical calibration.
  |--> RawAccessSession: handle on the tile source serving the pixel data.
  |--> PlaneInfo: optional per plane acquisition metadata.

Pixel data is read as float64 voxel values, as packed raw bytes, or as an array
of the image's own pixel type. Every read accepts optional inclusive [min, max]
bounds per axis which are clamped to the image.
"""

from __future__ import annotations

import contextlib
import dataclasses
from typing import Any, Iterable, Iterator, List, Mapping, Optional

import dataclasses_json
from ez_omero_pixels import coordinates
from ez_omero_pixels import ez_pixels_errors
from ez_omero_pixels import ez_pixels_logging_factory
from ez_omero_pixels import pixel_types
from ez_omero_pixels import plane_info as plane_info_module
from ez_omero_pixels import raw_access_session
from ez_omero_pixels import tile_source
from ez_omero_pixels import volume_assembler
import numpy as np

# Scale of OMERO JSON API length and time units to micrometres and seconds.
_LENGTH_UNIT_SCALE = {
    'NANOMETER': 1e-3,
    'MICROMETER': 1.0,
    'MILLIMETER': 1e3,
    'CENTIMETER': 1e4,
    'METER': 1e6,
}
_TIME_UNIT_SCALE = {
    'NANOSECOND': 1e-9,
    'MICROSECOND': 1e-6,
    'MILLISECOND': 1e-3,
    'SECOND': 1.0,
    'MINUTE': 60.0,
    'HOUR': 3600.0,
}


def _get_quantity(
    pixels_json: Mapping[str, Any], key: str, unit_scale: Mapping[str, float]
) -> Optional[float]:
  """Returns OMERO JSON quantity converted with unit_scale or None."""
  quantity = pixels_json.get(key)
  if quantity is None:
    return None
  if not isinstance(quantity, Mapping):
    return float(quantity)
  value = quantity.get('Value')
  if value is None:
    return None
  unit = quantity.get('Unit')
  if unit is None:
    return float(value)
  scale = unit_scale.get(unit)
  if scale is None:
    raise ez_pixels_errors.InvalidPixelsMetadataError(
        f'Unsupported unit {unit} for {key}.'
    )
  return float(value) * scale


@dataclasses_json.dataclass_json
@dataclasses.dataclass(frozen=True)
class PixelsMetadata:
  """Sizes, pixel type and calibration of an image's pixels.

  Physical sizes are in micrometres per pixel, the time increment in seconds.
  """

  size_x: int
  size_y: int
  size_c: int
  size_z: int
  size_t: int
  pixel_type: str
  physical_size_x: Optional[float] = None
  physical_size_y: Optional[float] = None
  physical_size_z: Optional[float] = None
  time_increment: Optional[float] = None

  def __post_init__(self):
    sizes = (self.size_x, self.size_y, self.size_c, self.size_z, self.size_t)
    if any(size < 1 for size in sizes):
      raise ez_pixels_errors.InvalidPixelsMetadataError(
          f'Image sizes must be positive; found {sizes}.'
      )
    # Raises if the pixel type is not supported.
    pixel_types.PixelType.from_string(self.pixel_type)

  @property
  def extent(self) -> coordinates.ImageExtent:
    return coordinates.ImageExtent(
        self.size_x, self.size_y, self.size_c, self.size_z, self.size_t
    )

  @property
  def type(self) -> pixel_types.PixelType:
    return pixel_types.PixelType.from_string(self.pixel_type)

  @classmethod
  def from_omero_json(cls, pixels_json: Mapping[str, Any]) -> PixelsMetadata:
    """Returns metadata parsed from an OMERO JSON API Pixels object.

    Args:
      pixels_json: 'Pixels' object of an OMERO JSON API image, e.g.
        {'SizeX': 512, ..., 'Type': {'value': 'uint16'},
        'PhysicalSizeX': {'Value': 0.65, 'Unit': 'MICROMETER'}}.

    Returns:
      PixelsMetadata.

    Raises:
      InvalidPixelsMetadataError: Required value missing or invalid.
    """
    try:
      pixel_type = pixels_json['Type']
      if isinstance(pixel_type, Mapping):
        pixel_type = pixel_type['value']
      return PixelsMetadata(
          size_x=int(pixels_json['SizeX']),
          size_y=int(pixels_json['SizeY']),
          size_c=int(pixels_json['SizeC']),
          size_z=int(pixels_json['SizeZ']),
          size_t=int(pixels_json['SizeT']),
          pixel_type=str(pixel_type),
          physical_size_x=_get_quantity(
              pixels_json, 'PhysicalSizeX', _LENGTH_UNIT_SCALE
          ),
          physical_size_y=_get_quantity(
              pixels_json, 'PhysicalSizeY', _LENGTH_UNIT_SCALE
          ),
          physical_size_z=_get_quantity(
              pixels_json, 'PhysicalSizeZ', _LENGTH_UNIT_SCALE
          ),
          time_increment=_get_quantity(
              pixels_json, 'TimeIncrement', _TIME_UNIT_SCALE
          ),
      )
    except (KeyError, TypeError, ValueError) as exp:
      raise ez_pixels_errors.InvalidPixelsMetadataError(
          'Invalid OMERO pixels metadata.'
      ) from exp
    except ez_pixels_errors.UnsupportedPixelTypeError as exp:
      raise ez_pixels_errors.InvalidPixelsMetadataError(str(exp)) from exp


class Pixels:
  """Reads the pixel data of one image from a tile source."""

  def __init__(
      self,
      metadata: PixelsMetadata,
      source: tile_source.AbstractTileSource,
      context: Optional[Mapping[str, Any]] = None,
      logging_factory: Optional[
          ez_pixels_logging_factory.AbstractLoggingInterfaceFactory
      ] = None,
      max_tile_edge: int = volume_assembler.MAX_TILE_EDGE,
  ):
    """Constructor.

    Args:
      metadata: Pixels metadata of the image.
      source: Tile source serving the image's pixel data.
      context: Optional request context forwarded with every tile fetch.
      logging_factory: The factory used to construct loggers. Python logging
        is used if undefined.
      max_tile_edge: Largest tile edge requested from the tile source.
    """
    self._metadata = metadata
    self._logging_factory = logging_factory
    self._logger = None
    self._session = raw_access_session.RawAccessSession(
        source, context, logging_factory
    )
    self._max_tile_edge = max_tile_edge
    self._planes_info: List[plane_info_module.PlaneInfo] = []

  @property
  def logger(self) -> ez_pixels_logging_factory.AbstractLoggingInterface:
    if self._logger is None:
      self._logger = ez_pixels_logging_factory.get_logger(
          self._logging_factory
      )
    return self._logger

  @property
  def metadata(self) -> PixelsMetadata:
    return self._metadata

  @property
  def session(self) -> raw_access_session.RawAccessSession:
    return self._session

  @property
  def extent(self) -> coordinates.ImageExtent:
    return self._metadata.extent

  @property
  def pixel_type(self) -> pixel_types.PixelType:
    return self._metadata.type

  @property
  def size_x(self) -> int:
    return self._metadata.size_x

  @property
  def size_y(self) -> int:
    return self._metadata.size_y

  @property
  def size_c(self) -> int:
    return self._metadata.size_c

  @property
  def size_z(self) -> int:
    return self._metadata.size_z

  @property
  def size_t(self) -> int:
    return self._metadata.size_t

  def get_bounds(
      self,
      x_bounds: coordinates.AxisBounds = None,
      y_bounds: coordinates.AxisBounds = None,
      c_bounds: coordinates.AxisBounds = None,
      z_bounds: coordinates.AxisBounds = None,
      t_bounds: coordinates.AxisBounds = None,
  ) -> coordinates.Bounds:
    """Returns requested bounds clamped to the image."""
    return coordinates.resolve_bounds(
        self.extent, x_bounds, y_bounds, c_bounds, z_bounds, t_bounds
    )

  @contextlib.contextmanager
  def raw_data_access(self) -> Iterator[Pixels]:
    """Keeps the tile source handle open across several reads.

    with pixels.raw_data_access():
      first = pixels.get_all_pixels(t_bounds=[0, 0])
      second = pixels.get_all_pixels(t_bounds=[1, 1])

    Yields:
      self
    """
    with self._session:
      yield self

  def get_all_pixels(
      self,
      x_bounds: coordinates.AxisBounds = None,
      y_bounds: coordinates.AxisBounds = None,
      c_bounds: coordinates.AxisBounds = None,
      z_bounds: coordinates.AxisBounds = None,
      t_bounds: coordinates.AxisBounds = None,
  ) -> np.ndarray:
    """Returns voxel values within bounds as float64.

    Args:
      x_bounds: Optional inclusive [min, max] X range; whole axis if None.
      y_bounds: Optional inclusive [min, max] Y range; whole axis if None.
      c_bounds: Optional inclusive [min, max] C range; whole axis if None.
      z_bounds: Optional inclusive [min, max] Z range; whole axis if None.
      t_bounds: Optional inclusive [min, max] T range; whole axis if None.

    Returns:
      Array indexed [t, z, c, y, x].

    Raises:
      InstantiationError: Tile source handle could not be created.
      AccessError: A tile could not be read.
    """
    return volume_assembler.read_values(
        self.extent,
        self._session,
        x_bounds,
        y_bounds,
        c_bounds,
        z_bounds,
        t_bounds,
        max_tile_edge=self._max_tile_edge,
        logger=self.logger,
    )

  def get_raw_pixels(
      self,
      bpp: Optional[int] = None,
      x_bounds: coordinates.AxisBounds = None,
      y_bounds: coordinates.AxisBounds = None,
      c_bounds: coordinates.AxisBounds = None,
      z_bounds: coordinates.AxisBounds = None,
      t_bounds: coordinates.AxisBounds = None,
  ) -> np.ndarray:
    """Returns packed raw pixel bytes within bounds.

    Args:
      bpp: Bytes per pixel; defaults to the pixel type's storage width.
      x_bounds: Optional inclusive [min, max] X range; whole axis if None.
      y_bounds: Optional inclusive [min, max] Y range; whole axis if None.
      c_bounds: Optional inclusive [min, max] C range; whole axis if None.
      z_bounds: Optional inclusive [min, max] Z range; whole axis if None.
      t_bounds: Optional inclusive [min, max] T range; whole axis if None.

    Returns:
      uint8 array indexed [t, z, c, (y * width + x) * bpp + i].

    Raises:
      InvalidBytesPerPixelError: bpp is not positive.
      InstantiationError: Tile source handle could not be created.
      AccessError: A tile could not be read.
    """
    if bpp is None:
      bpp = self.pixel_type.bytes_per_pixel
    return volume_assembler.read_raw(
        self.extent,
        self._session,
        bpp,
        x_bounds,
        y_bounds,
        c_bounds,
        z_bounds,
        t_bounds,
        max_tile_edge=self._max_tile_edge,
        logger=self.logger,
    )

  def get_pixels_ndarray(
      self,
      x_bounds: coordinates.AxisBounds = None,
      y_bounds: coordinates.AxisBounds = None,
      c_bounds: coordinates.AxisBounds = None,
      z_bounds: coordinates.AxisBounds = None,
      t_bounds: coordinates.AxisBounds = None,
  ) -> np.ndarray:
    """Returns pixels within bounds as an array of the image's pixel type.

    Args:
      x_bounds: Optional inclusive [min, max] X range; whole axis if None.
      y_bounds: Optional inclusive [min, max] Y range; whole axis if None.
      c_bounds: Optional inclusive [min, max] C range; whole axis if None.
      z_bounds: Optional inclusive [min, max] Z range; whole axis if None.
      t_bounds: Optional inclusive [min, max] T range; whole axis if None.

    Returns:
      Array indexed [t, z, c, y, x] in native byte order. Raw bytes are
      decoded in the byte order of the tile source.
    """
    bounds = self.get_bounds(x_bounds, y_bounds, c_bounds, z_bounds, t_bounds)
    raw = self.get_raw_pixels(
        None, x_bounds, y_bounds, c_bounds, z_bounds, t_bounds
    )
    size = bounds.size
    shape = (size.t, size.z, size.c, size.y, size.x)
    dtype = self.pixel_type.dtype(self._session.source.byte_order)
    if raw.size == 0:
      return np.zeros(shape, dtype.newbyteorder('='))
    return raw.view(dtype).reshape(shape).astype(dtype.newbyteorder('='))

  def load_planes_info(
      self, planes: Iterable[plane_info_module.PlaneInfo]
  ) -> None:
    """Sets plane acquisition metadata used by the plane statistics."""
    self._planes_info = list(planes)

  @property
  def planes_info(self) -> List[plane_info_module.PlaneInfo]:
    return list(self._planes_info)

  @property
  def mean_time_interval(self) -> float:
    return plane_info_module.compute_mean_time_interval(
        self._planes_info, self.size_t
    )

  def mean_exposure_time(self, channel: int) -> float:
    return plane_info_module.compute_mean_exposure_time(
        self._planes_info, channel
    )

  @property
  def position_x(self) -> float:
    return plane_info_module.get_min_position(self._planes_info, 'x')

  @property
  def position_y(self) -> float:
    return plane_info_module.get_min_position(self._planes_info, 'y')

  @property
  def position_z(self) -> float:
    return plane_info_module.get_min_position(self._planes_info, 'z')
