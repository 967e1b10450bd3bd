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
"""5D voxel coordinates, image extents and sub-volume bounds.

Pixel data is indexed by (X, Y, C, Z, T). A caller requests a sub-volume as an
optional [min, max] pair per axis; resolve_bounds clamps the request against
the image extent and returns the canonical start + size description used to
drive tile retrieval.
"""

from __future__ import annotations

import dataclasses
from typing import Optional, Sequence, Tuple

import dataclasses_json

# Optional inclusive [min, max] request for one axis.
AxisBounds = Optional[Sequence[int]]


@dataclasses.dataclass(frozen=True)
class Coordinate:
  """A voxel position (or a per-axis size) in the 5D pixel grid."""

  x: int
  y: int
  c: int
  z: int
  t: int


@dataclasses_json.dataclass_json
@dataclasses.dataclass(frozen=True)
class ImageExtent:
  """Number of voxels along each axis of an image's pixel grid."""

  size_x: int
  size_y: int
  size_c: int
  size_z: int
  size_t: int

  def as_coordinate(self) -> Coordinate:
    return Coordinate(
        self.size_x, self.size_y, self.size_c, self.size_z, self.size_t
    )


@dataclasses.dataclass(frozen=True)
class Bounds:
  """Axis aligned 5D box described by its first voxel and its size."""

  start: Coordinate
  size: Coordinate

  @property
  def end(self) -> Coordinate:
    """Returns the last voxel (inclusive) in the box."""
    return Coordinate(
        self.start.x + self.size.x - 1,
        self.start.y + self.size.y - 1,
        self.start.c + self.size.c - 1,
        self.start.z + self.size.z - 1,
        self.start.t + self.size.t - 1,
    )

  @property
  def is_empty(self) -> bool:
    size = self.size
    return min(size.x, size.y, size.c, size.z, size.t) <= 0

  @property
  def voxel_count(self) -> int:
    size = self.size
    return size.x * size.y * size.c * size.z * size.t


def check_axis_bounds(bounds: AxisBounds, image_size: int) -> Tuple[int, int]:
  """Returns inclusive (min, max) range for one axis clamped to the image.

  Args:
    bounds: Requested [min, max] pair. None or fewer than two elements selects
      the whole axis. Values beyond the second are ignored.
    image_size: Number of voxels along the axis.

  Returns:
    Range clamped to [0, image_size - 1]. An inverted request is not rejected;
    the returned max may be smaller than the returned min.
  """
  lower = 0
  upper = image_size - 1
  if bounds is not None and len(bounds) > 1:
    lower = max(lower, int(bounds[0]))
    upper = min(upper, int(bounds[1]))
  return lower, upper


def resolve_bounds(
    extent: ImageExtent,
    x_bounds: AxisBounds = None,
    y_bounds: AxisBounds = None,
    c_bounds: AxisBounds = None,
    z_bounds: AxisBounds = None,
    t_bounds: AxisBounds = None,
) -> Bounds:
  """Clamps a requested sub-volume to the image extent.

  Each axis is resolved independently with check_axis_bounds. An axis whose
  clamped range is inverted resolves to size 0, i.e. an empty selection.

  Args:
    extent: Image extent the request is resolved against.
    x_bounds: Requested X range.
    y_bounds: Requested Y range.
    c_bounds: Requested C range.
    z_bounds: Requested Z range.
    t_bounds: Requested T range.

  Returns:
    Bounds describing the voxels to retrieve.
  """
  ranges = (
      check_axis_bounds(x_bounds, extent.size_x),
      check_axis_bounds(y_bounds, extent.size_y),
      check_axis_bounds(c_bounds, extent.size_c),
      check_axis_bounds(z_bounds, extent.size_z),
      check_axis_bounds(t_bounds, extent.size_t),
  )
  start = Coordinate(*(lower for lower, _ in ranges))
  size = Coordinate(*(max(0, upper - lower + 1) for lower, upper in ranges))
  return Bounds(start=start, size=size)
