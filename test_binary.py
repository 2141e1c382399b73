#!/usr/bin/env python3
"""
Tests for reading raw float32 dose arrays.

Usage:
    pytest test_binary.py
"""

import logging

import numpy as np
import pytest

from conftest import header_text, sample_dose, write_dose_pair
from tomodose.binary import read_binary_dose
from tomodose.errors import TruncatedData
from tomodose.header import parse_header

logging.basicConfig(level=logging.INFO, format="%(asctime)s [%(levelname)s] %(name)s: %(message)s")
logger = logging.getLogger(__name__)


def test_x_is_fastest_varying(tmp_path):
    header = parse_header(header_text(dims=(3, 2, 2)))
    values = np.arange(12, dtype=">f4")
    path = tmp_path / "dose_0.img"
    path.write_bytes(values.tobytes())

    volume = read_binary_dose(path, header)
    assert volume.shape == (3, 2, 2)
    assert volume.data.dtype == np.float32
    # element (i, j, k) sits at offset i + 3*j + 6*k in the file
    assert volume.data[1, 0, 0] == 1.0
    assert volume.data[0, 1, 0] == 3.0
    assert volume.data[0, 0, 1] == 6.0
    assert volume.data[2, 1, 1] == 11.0
    logger.info("✓ Binary layout is x-fastest")


def test_values_pass_through_unchanged(tmp_path):
    data = sample_dose((4, 3, 2))
    data[0, 0, 0] = -1.25
    img = write_dose_pair(tmp_path, "dose_0", data)
    header = parse_header(header_text(data.shape))
    volume = read_binary_dose(img, header)
    np.testing.assert_array_equal(volume.data, data)
    assert volume.start == header.start
    assert volume.width == header.width


def test_truncated_file(tmp_path):
    header = parse_header(header_text(dims=(4, 3, 2)))
    path = tmp_path / "dose_0.img"
    path.write_bytes(np.zeros(23, dtype=">f4").tobytes())
    with pytest.raises(TruncatedData):
        read_binary_dose(path, header)


def test_oversized_header_is_truncated_not_allocated(tmp_path):
    # the declared size is checked against the file before any buffer is allocated
    for n in (20000, 100000000):
        header = parse_header(header_text(dims=(n, n, n)))
        path = tmp_path / "dose_0.img"
        path.write_bytes(np.zeros(24, dtype=">f4").tobytes())
        with pytest.raises(TruncatedData) as excinfo:
            read_binary_dose(path, header)
        assert excinfo.value.status == "truncated"


def test_trailing_bytes_are_ignored(tmp_path):
    header = parse_header(header_text(dims=(2, 2, 1)))
    path = tmp_path / "dose_0.img"
    path.write_bytes(np.arange(6, dtype=">f4").tobytes())
    volume = read_binary_dose(path, header)
    assert volume.data.size == 4
    assert volume.data.max() == 3.0


def test_little_endian(tmp_path):
    data = sample_dose((2, 2, 2))
    img = write_dose_pair(tmp_path, "dose_0", data, byte_order="<")
    header = parse_header(header_text(data.shape))
    np.testing.assert_array_equal(read_binary_dose(img, header, byte_order="little").data, data)
    assert not np.array_equal(read_binary_dose(img, header, byte_order="big").data, data)


def test_physical_coordinates(tmp_path):
    data = sample_dose((4, 3, 2))
    img = write_dose_pair(tmp_path, "dose_0", data, start=(-10.0, -5.0, -150.0), width=(0.5, 0.25, 1.0))
    volume = read_binary_dose(img, parse_header(header_text(data.shape, (-10.0, -5.0, -150.0), (0.5, 0.25, 1.0))))
    np.testing.assert_allclose(volume.coordinates(0), [-10.0, -9.5, -9.0, -8.5])
    np.testing.assert_allclose(volume.coordinates(2), [-150.0, -149.0])
