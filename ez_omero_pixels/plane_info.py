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
"""Acquisition metadata of individual planes and statistics derived from it."""
from __future__ import annotations

import dataclasses
import math
from typing import Collection, Iterable, List, Optional

import dataclasses_json

_POSITION_AXES = ('x', 'y', 'z')


@dataclasses_json.dataclass_json
@dataclasses.dataclass(frozen=True)
class PlaneInfo:
  """Acquisition metadata of the plane at (the_c, the_z, the_t).

  Times are in seconds, stage positions in micrometres. Measurements the
  acquisition did not record are None.
  """

  the_c: int
  the_z: int
  the_t: int
  delta_t: Optional[float] = None
  exposure_time: Optional[float] = None
  position_x: Optional[float] = None
  position_y: Optional[float] = None
  position_z: Optional[float] = None

  def get_position(self, axis: str) -> Optional[float]:
    if axis not in _POSITION_AXES:
      raise ValueError(f'Unknown stage axis: {axis}.')
    return getattr(self, f'position_{axis}')


def _as_float(value: Optional[float]) -> float:
  return math.nan if value is None else float(value)


def compute_mean_time_interval(
    planes: Collection[PlaneInfo], size_t: int
) -> float:
  """Returns mean interval between consecutive time points in seconds.

  Time points are read from the planes of the first channel and first Z
  section. Intervals with an unknown delta_t are ignored.

  Args:
    planes: Plane metadata of the image.
    size_t: Number of time points in the image.

  Returns:
    Mean interval; NaN if no interval is known.
  """
  count_t = min(size_t, len(planes))
  deltas = [math.nan] * count_t
  for plane in planes:
    if plane.the_c == 0 and plane.the_z == 0 and plane.the_t < count_t:
      deltas[plane.the_t] = _as_float(plane.delta_t)
  intervals = [
      current - previous
      for previous, current in zip(deltas, deltas[1:])
      if not math.isnan(previous) and not math.isnan(current)
  ]
  if not intervals:
    return math.nan
  return sum(intervals) / len(intervals)


def compute_mean_exposure_time(
    planes: Iterable[PlaneInfo], channel: int
) -> float:
  """Returns mean exposure time in seconds of the planes in channel.

  Args:
    planes: Plane metadata of the image.
    channel: Channel index.

  Returns:
    Mean exposure time; NaN if no exposure time is known for the channel.
  """
  exposures = [
      float(plane.exposure_time)
      for plane in planes
      if plane.the_c == channel and plane.exposure_time is not None
  ]
  if not exposures:
    return math.nan
  return sum(exposures) / len(exposures)


def get_min_position(planes: Iterable[PlaneInfo], axis: str) -> float:
  """Returns the smallest known stage position along axis in micrometres.

  Args:
    planes: Plane metadata of the image.
    axis: 'x', 'y' or 'z'.

  Returns:
    Minimum position; 0.0 if no position is known.
  """
  positions: List[float] = []
  for plane in planes:
    position = plane.get_position(axis)
    if position is not None:
      positions.append(float(position))
  return min(positions, default=0.0)
