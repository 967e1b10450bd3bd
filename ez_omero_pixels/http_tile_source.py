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
"""Tile source reading pixels from an OMERO pixel buffer HTTP service.

Tiles are requested as:

  GET {base_url}/tile/{image_id}/{z}/{c}/{t}?x=..&y=..&w=..&h=..

The response body holds the tile's raw pixel bytes, row major, in the
service's byte order (big endian for OMERO pixel buffers).
"""
from typing import Any, Mapping, Optional

from ez_omero_pixels import error_retry_util
from ez_omero_pixels import ez_pixels_errors
from ez_omero_pixels import pixel_types
from ez_omero_pixels import tile_source
import requests
import retrying

_DEFAULT_URL_TEMPLATE = '{base_url}/tile/{image_id}/{z}/{c}/{t}'
_SESSION_COOKIE = 'sessionid'
_DEFAULT_TIMEOUT = 600


class HttpTileSource(tile_source.AbstractTileSource):
  """Reads the tiles of one image over HTTP."""

  def __init__(
      self,
      base_url: str,
      image_id: int,
      pixel_type: pixel_types.PixelType,
      session_key: Optional[str] = None,
      byte_order: str = pixel_types.BIG_ENDIAN,
      timeout: Optional[int] = _DEFAULT_TIMEOUT,
      retry: bool = False,
      max_attempts: int = error_retry_util.DEFAULT_TILE_REQUEST_ATTEMPTS,
      url_template: str = _DEFAULT_URL_TEMPLATE,
  ):
    """Constructor.

    Args:
      base_url: Base URL of the pixel buffer service.
      image_id: OMERO image id.
      pixel_type: Pixel type of the image.
      session_key: OMERO session key sent as session cookie.
      byte_order: Byte order of the returned pixel bytes.
      timeout: Http timeout in seconds.
      retry: Retry tile requests failing with transient server or transport
        errors.
      max_attempts: Requests made per tile when retry is True.
      url_template: Format string of the tile URL; receives base_url,
        image_id, z, c and t.
    """
    self._base_url = base_url.rstrip('/')
    self._image_id = image_id
    self._pixel_type = pixel_type
    self._session_key = session_key
    self._byte_order = byte_order
    self._timeout = timeout
    self._retry_config = error_retry_util.tile_request_retry_config(
        retry, max_attempts
    )
    self._url_template = url_template

  @property
  def pixel_type(self) -> pixel_types.PixelType:
    return self._pixel_type

  @property
  def byte_order(self) -> str:
    return self._byte_order

  def tile_url(self, plane: tile_source.Plane) -> str:
    return self._url_template.format(
        base_url=self._base_url,
        image_id=self._image_id,
        z=plane.z,
        c=plane.c,
        t=plane.t,
    )

  def open(self) -> requests.Session:
    try:
      session = requests.Session()
      if self._session_key is not None:
        session.cookies.set(_SESSION_COOKIE, self._session_key)
    except (requests.exceptions.RequestException, ValueError) as exp:
      raise ez_pixels_errors.InstantiationError(
          f'Cannot create session for image {self._image_id}.'
      ) from exp
    return session

  def _get(
      self, handle: requests.Session, url: str, params: Mapping[str, Any]
  ) -> bytes:
    """Returns the body of a single GET request.

    Raises:
      ez_pixels_errors.HttpError: Service returned an error status.
      ez_pixels_errors.TileTransportError: Request failed in transport.
    """
    try:
      response = handle.get(url, params=params, timeout=self._timeout)
      response.raise_for_status()
      return response.content
    except requests.exceptions.HTTPError as exp:
      ez_pixels_errors.raise_http_exception(
          f'Tile request failed: {url}', exp
      )
    except requests.exceptions.RequestException as exp:
      raise ez_pixels_errors.TileTransportError(
          f'Tile request failed: {url}'
      ) from exp

  def fetch(
      self,
      handle: requests.Session,
      context: Optional[Mapping[str, Any]],
      plane: tile_source.Plane,
      x: int,
      y: int,
      width: int,
      height: int,
  ) -> tile_source.Tile:
    url = self.tile_url(plane)
    params = {}
    if context:
      params.update(context)
    params.update({'x': x, 'y': y, 'w': width, 'h': height})

    @retrying.retry(**self._retry_config)
    def _inner_func() -> bytes:
      return self._get(handle, url, params)

    raw = _inner_func()
    expected = width * height * self._pixel_type.bytes_per_pixel
    if len(raw) != expected:
      raise ez_pixels_errors.DataSourceError(
          f'Tile response has {len(raw)} bytes; expected {expected}. URL: {url}'
      )
    return tile_source.Tile(
        plane, x, y, width, height, raw, self._pixel_type, self._byte_order
    )

  def close(self, handle: requests.Session) -> None:
    handle.close()
