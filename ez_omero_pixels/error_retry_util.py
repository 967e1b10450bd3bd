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
"""Retry policy for tile requests made to a pixel service."""

from typing import Any, Dict

from ez_omero_pixels import ez_pixels_errors

DEFAULT_TILE_REQUEST_ATTEMPTS = 5

# Failures after which a later request for the same tile can succeed.
TRANSIENT_TILE_ERRORS = (
    ez_pixels_errors.TileTransportError,
    ez_pixels_errors.HttpInternalServerError,
    ez_pixels_errors.HttpTooManyRequestsError,
    ez_pixels_errors.HttpRequestTimeoutError,
    ez_pixels_errors.HttpServiceUnavailableError,
    ez_pixels_errors.HttpGatewayTimeoutError,
)


def is_transient_tile_error(exception: Exception) -> bool:
  return isinstance(exception, TRANSIENT_TILE_ERRORS)


TILE_REQUEST_RETRY_CONFIG = dict(
    retry_on_exception=is_transient_tile_error,
    wait_exponential_multiplier=500,
    wait_exponential_max=8000,
    stop_max_attempt_number=DEFAULT_TILE_REQUEST_ATTEMPTS,
)


def tile_request_retry_config(
    retry: bool, max_attempts: int = DEFAULT_TILE_REQUEST_ATTEMPTS
) -> Dict[str, Any]:
  """Returns retrying.retry arguments for one tile request.

  Args:
    retry: Retry transient failures. If False the tile is requested once.
    max_attempts: Number of requests made for the tile when retry is True.

  Returns:
    Copy of TILE_REQUEST_RETRY_CONFIG limited to the allowed attempts.

  Raises:
    ValueError: max_attempts is not positive.
  """
  if max_attempts < 1:
    raise ValueError(f'Tile request attempts must be positive: {max_attempts}.')
  config = dict(TILE_REQUEST_RETRY_CONFIG)
  config['stop_max_attempt_number'] = max_attempts if retry else 1
  return config
