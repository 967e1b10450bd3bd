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
"""OMERO pixel types and decoding of packed raw pixel bytes."""
from __future__ import annotations

import enum

from ez_omero_pixels import ez_pixels_errors
import numpy as np

BIG_ENDIAN = '>'
LITTLE_ENDIAN = '<'


class PixelType(enum.Enum):
  """Pixel types defined by the OME data model, valued by their OMERO name."""

  INT8 = 'int8'
  UINT8 = 'uint8'
  INT16 = 'int16'
  UINT16 = 'uint16'
  INT32 = 'int32'
  UINT32 = 'uint32'
  FLOAT = 'float'
  DOUBLE = 'double'
  # Single bit pixels are served one byte per pixel.
  BIT = 'bit'

  @classmethod
  def from_string(cls, name: str) -> PixelType:
    """Returns pixel type for an OMERO pixel type name, e.g. 'uint16'."""
    try:
      return cls(name.strip().lower())
    except (AttributeError, ValueError) as exp:
      raise ez_pixels_errors.UnsupportedPixelTypeError(
          f'Unsupported pixel type: {name!r}.'
      ) from exp

  @property
  def bytes_per_pixel(self) -> int:
    return _NUMPY_TYPE[self].itemsize

  @property
  def is_floating_point(self) -> bool:
    return self in (PixelType.FLOAT, PixelType.DOUBLE)

  @property
  def is_signed(self) -> bool:
    return np.issubdtype(_NUMPY_TYPE[self], np.signedinteger) or (
        self.is_floating_point
    )

  def dtype(self, byte_order: str = BIG_ENDIAN) -> np.dtype:
    """Returns numpy dtype of the stored pixels in byte_order."""
    return _NUMPY_TYPE[self].newbyteorder(byte_order)


_NUMPY_TYPE = {
    PixelType.INT8: np.dtype(np.int8),
    PixelType.UINT8: np.dtype(np.uint8),
    PixelType.INT16: np.dtype(np.int16),
    PixelType.UINT16: np.dtype(np.uint16),
    PixelType.INT32: np.dtype(np.int32),
    PixelType.UINT32: np.dtype(np.uint32),
    PixelType.FLOAT: np.dtype(np.float32),
    PixelType.DOUBLE: np.dtype(np.float64),
    PixelType.BIT: np.dtype(np.uint8),
}


def raw_to_ndarray(
    raw: bytes,
    width: int,
    height: int,
    pixel_type: PixelType,
    byte_order: str = BIG_ENDIAN,
) -> np.ndarray:
  """Decodes a packed plane of raw pixel bytes.

  Args:
    raw: Row-major pixel bytes, bytes_per_pixel bytes per pixel.
    width: Plane width in pixels.
    height: Plane height in pixels.
    pixel_type: Type of the stored pixels.
    byte_order: Byte order the pixels were stored in.

  Returns:
    (height, width) array of pixel_type values in native byte order.

  Raises:
    InvalidTileDataError: Number of bytes does not match plane dimensions.
  """
  expected = width * height * pixel_type.bytes_per_pixel
  if len(raw) != expected:
    raise ez_pixels_errors.InvalidTileDataError(
        f'Expected {expected} bytes for {width}x{height} {pixel_type.value}'
        f' pixels; found {len(raw)}.'
    )
  dtype = pixel_type.dtype(byte_order)
  values = np.frombuffer(raw, dtype=dtype).reshape((height, width))
  return values.astype(dtype.newbyteorder('='))
