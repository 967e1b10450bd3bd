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
"""Pluggable structured logging used by pixel retrieval.

Retrieval code never calls the python logging module directly; it logs through
an AbstractLoggingInterface obtained from a factory so that applications can
route pixel retrieval logs into their own logging stack.
"""
from __future__ import annotations

import abc
import collections
import logging
from typing import Any, Mapping, MutableMapping, Optional, Union


OptionalStructureElements = Union[Exception, Mapping[str, Any], None]
DEFAULT_EZ_PIXELS_PYTHON_LOGGER_NAME = 'ez-omero-pixels'


class AbstractLoggingInterface(metaclass=abc.ABCMeta):
  """Logging interface used by raw access sessions and volume assembly."""

  @abc.abstractmethod
  def debug(self, msg: str, *args: OptionalStructureElements) -> None:
    """Logs debug message.

    Args:
      msg: Message to log.
      *args: Optional mappings or exception logged as structured elements.
    """

  @abc.abstractmethod
  def info(self, msg: str, *args: OptionalStructureElements) -> None:
    """Logs info message."""

  @abc.abstractmethod
  def warning(self, msg: str, *args: OptionalStructureElements) -> None:
    """Logs warning message."""

  @abc.abstractmethod
  def error(self, msg: str, *args: OptionalStructureElements) -> None:
    """Logs error message."""

  @abc.abstractmethod
  def critical(self, msg: str, *args: OptionalStructureElements) -> None:
    """Logs critical message."""


class AbstractLoggingInterfaceFactory(metaclass=abc.ABCMeta):

  @abc.abstractmethod
  def create_logger(
      self, signature: Optional[Mapping[str, Any]] = None
  ) -> AbstractLoggingInterface:
    """Creates an instance of the logger.

    Args:
      signature: Optional structure elements included in every log written by
        the returned logger, e.g. the image id pixels are read from.
    """


def _add_sorted(
    structure: MutableMapping[str, Any], element: Mapping[str, Any]
) -> None:
  for key in sorted(element):
    structure[key] = element[key]


class _PythonLogger(AbstractLoggingInterface):
  """Writes structured messages to a python logging.Logger."""

  def __init__(
      self,
      pylogger: logging.Logger,
      signature: Optional[Mapping[str, Any]] = None,
  ):
    self._logger = pylogger
    self._signature = dict(signature) if signature else {}

  def _format(self, msg: str, *args: OptionalStructureElements) -> str:
    """Appends 'key: value' structure elements to msg."""
    structure = collections.OrderedDict()
    exception = None
    for element in args:
      if not element:
        continue
      if isinstance(element, Exception):
        exception = element
      elif isinstance(element, Mapping):
        _add_sorted(structure, element)
    _add_sorted(structure, self._signature)
    if exception is not None:
      structure['EXCEPTION'] = exception
    if not structure:
      return msg
    text = '; '.join(f'{key}: {value}' for key, value in structure.items())
    return f'{msg}; {text}'

  def debug(self, msg: str, *args: OptionalStructureElements) -> None:
    self._logger.debug(self._format(msg, *args))

  def info(self, msg: str, *args: OptionalStructureElements) -> None:
    self._logger.info(self._format(msg, *args))

  def warning(self, msg: str, *args: OptionalStructureElements) -> None:
    self._logger.warning(self._format(msg, *args))

  def error(self, msg: str, *args: OptionalStructureElements) -> None:
    self._logger.error(self._format(msg, *args))

  def critical(self, msg: str, *args: OptionalStructureElements) -> None:
    self._logger.critical(self._format(msg, *args))


class BasePythonLoggerFactory(AbstractLoggingInterfaceFactory):
  """Factory constructing loggers backed by the python logging module."""

  def __init__(self, name: Optional[str] = None):
    self._name = name

  def create_logger(
      self, signature: Optional[Mapping[str, Any]] = None
  ) -> _PythonLogger:
    return _PythonLogger(logging.getLogger(self._name), signature)


def default_logging_factory() -> BasePythonLoggerFactory:
  return BasePythonLoggerFactory(DEFAULT_EZ_PIXELS_PYTHON_LOGGER_NAME)


def get_logger(
    logging_factory: Optional[AbstractLoggingInterfaceFactory] = None,
    signature: Optional[Mapping[str, Any]] = None,
) -> AbstractLoggingInterface:
  """Returns logger created by logging_factory or by the default factory."""
  if logging_factory is None:
    logging_factory = default_logging_factory()
  return logging_factory.create_logger(signature)
