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
"""Tests for raw access session."""
from unittest import mock

from absl.testing import absltest
from ez_omero_pixels import coordinates
from ez_omero_pixels import ez_pixels_errors
from ez_omero_pixels import ez_pixels_logging_factory
from ez_omero_pixels import raw_access_session
from ez_omero_pixels import tile_source
from ez_omero_pixels.test_utils import fake_tile_source

_EXTENT = coordinates.ImageExtent(4, 3, 1, 1, 1)
_PLANE = tile_source.Plane(c=0, z=0, t=0)


def _create_source(**kwargs) -> fake_tile_source.FakeTileSource:
  return fake_tile_source.FakeTileSource(
      fake_tile_source.create_test_pixels(_EXTENT), **kwargs
  )


class RawAccessSessionTest(absltest.TestCase):

  def test_ensure_open_reports_creation_once(self):
    source = _create_source()
    session = raw_access_session.RawAccessSession(source)
    self.assertTrue(session.ensure_open())
    self.assertFalse(session.ensure_open())
    self.assertTrue(session.is_open)
    self.assertEqual(source.open_count, 1)

  def test_close_if_created_false_keeps_session_open(self):
    source = _create_source()
    session = raw_access_session.RawAccessSession(source)
    session.ensure_open()
    session.close_if_created(False)
    self.assertTrue(session.is_open)
    self.assertEqual(source.close_count, 0)

  def test_close_if_created_true_closes_session(self):
    source = _create_source()
    session = raw_access_session.RawAccessSession(source)
    session.close_if_created(session.ensure_open())
    self.assertFalse(session.is_open)
    self.assertEqual(source.close_count, 1)

  def test_close_is_idempotent(self):
    source = _create_source()
    session = raw_access_session.RawAccessSession(source)
    session.ensure_open()
    session.close()
    session.close()
    self.assertEqual(source.close_count, 1)

  def test_acquire_closes_session_it_opened(self):
    source = _create_source()
    session = raw_access_session.RawAccessSession(source)
    with session.acquire() as acquired:
      self.assertIs(acquired, session)
      self.assertTrue(session.is_open)
    self.assertFalse(session.is_open)
    self.assertEqual(source.close_count, 1)

  def test_acquire_closes_session_on_exception(self):
    source = _create_source()
    session = raw_access_session.RawAccessSession(source)
    with self.assertRaises(ValueError):
      with session.acquire():
        raise ValueError('failure')
    self.assertFalse(session.is_open)
    self.assertEqual(source.open_handle_count, 0)

  def test_acquire_close_failure_keeps_block_exception(self):
    factory = mock.create_autospec(
        ez_pixels_logging_factory.AbstractLoggingInterfaceFactory,
        instance=True,
    )
    source = _create_source(fail_close=True)
    session = raw_access_session.RawAccessSession(
        source, logging_factory=factory
    )
    with self.assertRaisesRegex(ValueError, 'failure'):
      with session.acquire():
        raise ValueError('failure')
    self.assertFalse(session.is_open)
    factory.create_logger.return_value.error.assert_called_once()

  def test_acquire_close_failure_raises_without_block_exception(self):
    session = raw_access_session.RawAccessSession(
        _create_source(fail_close=True)
    )
    with self.assertRaises(ez_pixels_errors.DataSourceError):
      with session.acquire():
        pass
    self.assertFalse(session.is_open)

  def test_batch_scope_close_failure_keeps_block_exception(self):
    session = raw_access_session.RawAccessSession(
        _create_source(fail_close=True)
    )
    with self.assertRaisesRegex(ValueError, 'failure'):
      with session:
        raise ValueError('failure')
    self.assertFalse(session.is_open)

  def test_acquire_keeps_session_opened_by_caller(self):
    source = _create_source()
    session = raw_access_session.RawAccessSession(source)
    session.ensure_open()
    with session.acquire():
      pass
    self.assertTrue(session.is_open)
    self.assertEqual(source.close_count, 0)

  def test_batch_scope_reuses_handle(self):
    source = _create_source()
    session = raw_access_session.RawAccessSession(source)
    with session:
      with session.acquire():
        session.fetch(_PLANE, 0, 0, 2, 2)
      with session.acquire():
        session.fetch(_PLANE, 2, 0, 2, 2)
      self.assertTrue(session.is_open)
    self.assertFalse(session.is_open)
    self.assertEqual(source.open_count, 1)
    self.assertEqual(source.close_count, 1)

  def test_nested_batch_scope_closes_once(self):
    source = _create_source()
    session = raw_access_session.RawAccessSession(source)
    with session:
      with session:
        pass
      self.assertTrue(session.is_open)
    self.assertFalse(session.is_open)
    self.assertEqual(source.close_count, 1)

  def test_open_failure_raises_instantiation_error(self):
    source = _create_source(fail_open=True)
    session = raw_access_session.RawAccessSession(source)
    with self.assertRaises(ez_pixels_errors.InstantiationError):
      session.ensure_open()
    self.assertFalse(session.is_open)

  def test_fetch_without_open_session_raises(self):
    source = _create_source()
    session = raw_access_session.RawAccessSession(source)
    with self.assertRaises(ez_pixels_errors.SessionNotOpenError):
      session.fetch(_PLANE, 0, 0, 1, 1)
    self.assertEmpty(source.fetch_calls)

  def test_fetch_forwards_context(self):
    source = _create_source()
    session = raw_access_session.RawAccessSession(source, {'group': 3})
    with session.acquire():
      tile = session.fetch(_PLANE, 1, 1, 2, 2)
    self.assertEqual(source.fetch_calls[0].context, {'group': 3})
    self.assertEqual((tile.x, tile.y, tile.width, tile.height), (1, 1, 2, 2))

  def test_session_logs_through_supplied_factory(self):
    factory = mock.create_autospec(
        ez_pixels_logging_factory.AbstractLoggingInterfaceFactory,
        instance=True,
    )
    session = raw_access_session.RawAccessSession(
        _create_source(), logging_factory=factory
    )
    with session.acquire():
      pass
    logger = factory.create_logger.return_value
    self.assertEqual(logger.debug.call_count, 2)


if __name__ == '__main__':
  absltest.main()
