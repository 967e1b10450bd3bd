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
"""Tests for pixels."""
import math
from unittest import mock

from absl.testing import absltest
from absl.testing import parameterized
from ez_omero_pixels import ez_pixels_errors
from ez_omero_pixels import ez_pixels_logging_factory
from ez_omero_pixels import pixel_types
from ez_omero_pixels import pixels as pixels_module
from ez_omero_pixels import plane_info
from ez_omero_pixels.test_utils import fake_tile_source
import numpy as np

_METADATA = pixels_module.PixelsMetadata(
    size_x=9,
    size_y=6,
    size_c=2,
    size_z=2,
    size_t=3,
    pixel_type='uint16',
    physical_size_x=0.5,
    physical_size_y=0.5,
    physical_size_z=2.0,
    time_increment=1.5,
)

_OMERO_PIXELS_JSON = {
    '@type': 'http://www.openmicroscopy.org/Schemas/OME/2016-06#Pixels',
    'SizeX': 9,
    'SizeY': 6,
    'SizeC': 2,
    'SizeZ': 2,
    'SizeT': 3,
    'Type': {'@type': 'TBD#PixelsType', 'value': 'uint16'},
    'PhysicalSizeX': {'Unit': 'MICROMETER', 'Symbol': 'µm', 'Value': 0.5},
    'PhysicalSizeY': {'Unit': 'NANOMETER', 'Symbol': 'nm', 'Value': 500.0},
    'TimeIncrement': {'Unit': 'MILLISECOND', 'Symbol': 'ms', 'Value': 1500},
}


class PixelsMetadataTest(parameterized.TestCase):

  def test_extent(self):
    extent = _METADATA.extent
    self.assertEqual(
        (
            extent.size_x,
            extent.size_y,
            extent.size_c,
            extent.size_z,
            extent.size_t,
        ),
        (9, 6, 2, 2, 3),
    )
    self.assertEqual(_METADATA.type, pixel_types.PixelType.UINT16)

  def test_json_round_trip(self):
    self.assertEqual(
        pixels_module.PixelsMetadata.from_json(_METADATA.to_json()), _METADATA
    )

  def test_from_omero_json(self):
    metadata = pixels_module.PixelsMetadata.from_omero_json(
        _OMERO_PIXELS_JSON
    )
    self.assertEqual(metadata.extent, _METADATA.extent)
    self.assertEqual(metadata.pixel_type, 'uint16')
    self.assertAlmostEqual(metadata.physical_size_x, 0.5)
    self.assertAlmostEqual(metadata.physical_size_y, 0.5)
    self.assertIsNone(metadata.physical_size_z)
    self.assertAlmostEqual(metadata.time_increment, 1.5)

  def test_from_omero_json_pixel_type_string(self):
    pixels_json = dict(_OMERO_PIXELS_JSON, Type='float')
    metadata = pixels_module.PixelsMetadata.from_omero_json(pixels_json)
    self.assertEqual(metadata.type, pixel_types.PixelType.FLOAT)

  @parameterized.named_parameters([
      dict(testcase_name='missing_size', key='SizeZ', value=None),
      dict(testcase_name='invalid_size', key='SizeX', value='wide'),
      dict(testcase_name='zero_size', key='SizeT', value=0),
      dict(testcase_name='pixel_type', key='Type', value={'value': 'int64'}),
      dict(
          testcase_name='unit',
          key='PhysicalSizeZ',
          value={'Unit': 'PARSEC', 'Value': 1.0},
      ),
  ])
  def test_from_omero_json_invalid_raises(self, key, value):
    pixels_json = dict(_OMERO_PIXELS_JSON)
    if value is None:
      del pixels_json[key]
    else:
      pixels_json[key] = value
    with self.assertRaises(ez_pixels_errors.InvalidPixelsMetadataError):
      pixels_module.PixelsMetadata.from_omero_json(pixels_json)

  def test_unsupported_pixel_type_raises(self):
    with self.assertRaises(ez_pixels_errors.UnsupportedPixelTypeError):
      pixels_module.PixelsMetadata(1, 1, 1, 1, 1, 'complex')


class PixelsTest(parameterized.TestCase):

  def setUp(self):
    super().setUp()
    self._data = fake_tile_source.create_test_pixels(_METADATA.extent)
    self._source = fake_tile_source.FakeTileSource(self._data)
    self._pixels = pixels_module.Pixels(
        _METADATA, self._source, max_tile_edge=4
    )

  def test_sizes(self):
    self.assertEqual(
        (
            self._pixels.size_x,
            self._pixels.size_y,
            self._pixels.size_c,
            self._pixels.size_z,
            self._pixels.size_t,
        ),
        (9, 6, 2, 2, 3),
    )
    self.assertEqual(self._pixels.pixel_type, pixel_types.PixelType.UINT16)

  def test_get_bounds(self):
    bounds = self._pixels.get_bounds(x_bounds=[-2, 3], t_bounds=[2, 10])
    self.assertEqual((bounds.start.x, bounds.size.x), (0, 4))
    self.assertEqual((bounds.start.t, bounds.size.t), (2, 1))
    self.assertEqual(bounds.size.y, 6)

  def test_get_all_pixels(self):
    values = self._pixels.get_all_pixels()
    self.assertEqual(values.shape, (3, 2, 2, 6, 9))
    np.testing.assert_array_equal(values, self._data)
    self.assertFalse(self._pixels.session.is_open)
    self.assertEqual(self._source.close_count, 1)

  def test_get_all_pixels_bounded(self):
    values = self._pixels.get_all_pixels(
        x_bounds=[1, 7], y_bounds=[2, 5], c_bounds=[1, 1], t_bounds=[1, 2]
    )
    np.testing.assert_array_equal(values, self._data[1:3, :, 1:2, 2:6, 1:8])

  def test_get_raw_pixels_default_bpp(self):
    raw = self._pixels.get_raw_pixels()
    self.assertEqual(raw.shape, (3, 2, 2, 6 * 9 * 2))
    self.assertEqual(raw.tobytes(), self._data.astype('>u2').tobytes())

  def test_get_raw_pixels_explicit_bpp(self):
    raw = self._pixels.get_raw_pixels(1, x_bounds=[0, 1], y_bounds=[0, 0])
    self.assertEqual(raw.shape, (3, 2, 2, 2))

  def test_get_pixels_ndarray(self):
    result = self._pixels.get_pixels_ndarray(z_bounds=[1, 1])
    self.assertEqual(result.dtype, np.dtype(np.uint16))
    self.assertTrue(result.dtype.isnative)
    np.testing.assert_array_equal(result, self._data[:, 1:2])

  def test_get_pixels_ndarray_empty_bounds(self):
    result = self._pixels.get_pixels_ndarray(x_bounds=[5, 2])
    self.assertEqual(result.shape, (3, 2, 2, 6, 0))
    self.assertEmpty(self._source.fetch_calls)

  @parameterized.parameters(pixel_types.BIG_ENDIAN, pixel_types.LITTLE_ENDIAN)
  def test_get_pixels_ndarray_uses_source_byte_order(self, byte_order):
    metadata = pixels_module.PixelsMetadata(
        size_x=2, size_y=1, size_c=1, size_z=1, size_t=1, pixel_type='uint16'
    )
    data = np.array([[[[[1, 2]]]]], dtype=np.uint16)
    source = fake_tile_source.FakeTileSource(data, byte_order=byte_order)
    pixels = pixels_module.Pixels(metadata, source)

    np.testing.assert_array_equal(pixels.get_pixels_ndarray(), data)
    np.testing.assert_array_equal(
        pixels.get_all_pixels(), data.astype(np.float64)
    )

  def test_raw_data_access_keeps_session_open(self):
    with self._pixels.raw_data_access() as pixels:
      self.assertIs(pixels, self._pixels)
      pixels.get_all_pixels(t_bounds=[0, 0])
      pixels.get_raw_pixels(t_bounds=[1, 1])
      self.assertTrue(self._pixels.session.is_open)
    self.assertFalse(self._pixels.session.is_open)
    self.assertEqual(self._source.open_count, 1)
    self.assertEqual(self._source.close_count, 1)

  def test_raw_data_access_closes_on_failure(self):
    source = fake_tile_source.FakeTileSource(self._data, fail_on_fetch={1})
    pixels = pixels_module.Pixels(_METADATA, source)
    with self.assertRaises(ez_pixels_errors.AccessError):
      with pixels.raw_data_access():
        pixels.get_all_pixels()
    self.assertEqual(source.close_count, 1)
    self.assertEqual(source.open_handle_count, 0)

  def test_context_forwarded_to_tile_source(self):
    pixels = pixels_module.Pixels(
        _METADATA, self._source, context={'group': 5}
    )
    pixels.get_all_pixels(c_bounds=[0, 0], z_bounds=[0, 0], t_bounds=[0, 0])
    self.assertEqual(self._source.fetch_calls[0].context, {'group': 5})

  def test_logs_through_supplied_factory(self):
    factory = mock.create_autospec(
        ez_pixels_logging_factory.AbstractLoggingInterfaceFactory,
        instance=True,
    )
    pixels = pixels_module.Pixels(
        _METADATA, self._source, logging_factory=factory
    )
    pixels.get_all_pixels(t_bounds=[0, 0])
    factory.create_logger.return_value.info.assert_called_once()

  def test_plane_statistics(self):
    self._pixels.load_planes_info([
        plane_info.PlaneInfo(
            0, 0, 0, delta_t=0.0, exposure_time=0.2, position_x=4.0
        ),
        plane_info.PlaneInfo(
            0, 0, 1, delta_t=2.0, exposure_time=0.4, position_x=3.0
        ),
        plane_info.PlaneInfo(
            1, 0, 1, delta_t=2.5, exposure_time=1.0, position_y=-1.0
        ),
    ])
    self.assertLen(self._pixels.planes_info, 3)
    self.assertAlmostEqual(self._pixels.mean_time_interval, 2.0)
    self.assertAlmostEqual(self._pixels.mean_exposure_time(0), 0.3)
    self.assertEqual(self._pixels.position_x, 3.0)
    self.assertEqual(self._pixels.position_y, -1.0)
    self.assertEqual(self._pixels.position_z, 0.0)

  def test_plane_statistics_without_planes_info(self):
    self.assertTrue(math.isnan(self._pixels.mean_time_interval))
    self.assertTrue(math.isnan(self._pixels.mean_exposure_time(0)))
    self.assertEqual(self._pixels.position_x, 0.0)


if __name__ == '__main__':
  absltest.main()
