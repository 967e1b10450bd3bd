# !/usr/bin/python
#
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
"""Install script for ez-omero-pixels."""

import setuptools

setuptools.setup(
    name='ez_omero_pixels',
    version='0.1.0',
    author='Google LLC.',
    author_email='no-reply@google.com',
    license='Apache 2.0',
    description=(
        'A library that reads bounded 5D (X, Y, C, Z, T) pixel sub-volumes of'
        ' an OMERO image by stitching tiles fetched from a pixel service.'
    ),
    install_requires=[
        'absl-py',
        'dataclasses-json',
        'numpy',
        'requests',
        'requests_mock',
        'retrying',
    ],
    package_dir={
        'ez_omero_pixels': 'ez_omero_pixels',
        'ez_omero_pixels.test_utils': 'ez_omero_pixels/test_utils',
    },
    packages=setuptools.find_packages(
        include=[
            'ez_omero_pixels',
            'ez_omero_pixels.test_utils',
        ]
    ),
    python_requires='>=3.10',
)
