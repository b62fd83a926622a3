"""
Unit tests for splitting in-memory values into byte ranges
"""

import os
import sys
import json

import pytest

# Add parent directory to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import qr_file_split as qfs


TEXT_SERIALIZER = qfs.Serializer(
    serialize=lambda value: value.encode('utf-8'),
    deserialize=lambda data: data.decode('utf-8'),
)


class TestSplitBytes:
    """Test partitioning byte buffers"""

    def test_seven_bytes_into_three(self):
        """Test last range absorbs the remainder: 2, 2, 3"""
        parts = qfs.split_bytes(b'abcdefg', 3)

        assert [len(p) for p in parts] == [2, 2, 3]
        assert parts == [b'ab', b'cd', b'efg']

    def test_even_split(self):
        """Test a length divisible by the count"""
        parts = qfs.split_bytes(b'x' * 12, 4)
        assert [len(p) for p in parts] == [3, 3, 3, 3]

    def test_fewer_bytes_than_ranges(self):
        """Test ranges past the end of the data are empty"""
        assert qfs.split_bytes(b'ab', 5) == [b'a', b'b', b'', b'', b'']

    def test_empty_buffer(self):
        """Test an empty buffer gives all-empty ranges"""
        assert qfs.split_bytes(b'', 3) == [b'', b'', b'']

    def test_chunk_count_below_minimum(self):
        """Test fewer than 2 ranges is rejected"""
        for count in [0, 1, -1]:
            with pytest.raises(qfs.ValidationError, match="at least 2"):
                qfs.split_bytes(b'abcdefg', count)

    def test_accepts_bytearray(self):
        """Test bytes-like input is returned as bytes"""
        parts = qfs.split_bytes(bytearray(b'abcd'), 2)
        assert parts == [b'ab', b'cd']
        assert all(isinstance(p, bytes) for p in parts)


class TestJoinBytes:
    """Test concatenating byte ranges"""

    def test_join_in_order(self):
        """Test joining the ranges restores the buffer"""
        data = bytes(range(200))
        assert qfs.join_bytes(qfs.split_bytes(data, 6)) == data

    def test_join_shuffled_is_not_the_original(self):
        """Test join trusts the caller's order; a shuffle gives other bytes"""
        parts = qfs.split_bytes(b'abcdefg', 3)
        assert qfs.join_bytes([parts[2], parts[0], parts[1]]) == b'efgabcd'

    def test_join_no_parts(self):
        """Test an empty list is rejected"""
        with pytest.raises(qfs.ValidationError, match="No parts"):
            qfs.join_bytes([])

    def test_join_non_bytes_part(self):
        """Test a part that is not bytes-like is rejected"""
        with pytest.raises(qfs.ValidationError, match="index 1"):
            qfs.join_bytes([b'ab', 'cd'])


class TestSplitJoinValue:
    """Test the serializer-driven value path"""

    def test_json_value_round_trip(self):
        """Test a JSON-compatible value survives split and join"""
        value = {'name': 'report', 'pages': [1, 2, 3], 'draft': False, 'score': 9.5}

        parts = qfs.split_value(value, 4)

        assert len(parts) == 4
        assert qfs.join_value(parts) == value

    def test_seven_byte_value_into_three(self):
        """Test a value serialized to 7 bytes splits 2, 2, 3"""
        parts = qfs.split_value('seven!!', 3, serializer=TEXT_SERIALIZER)

        assert [len(p) for p in parts] == [2, 2, 3]
        assert qfs.join_value(parts, serializer=TEXT_SERIALIZER) == 'seven!!'

    def test_shuffled_join_is_undefined(self):
        """Test joining out of order gives a different value, not an error"""
        parts = qfs.split_value('abcdefg', 3, serializer=TEXT_SERIALIZER)
        shuffled = [parts[1], parts[2], parts[0]]

        assert qfs.join_value(shuffled, serializer=TEXT_SERIALIZER) == 'cdefgab'

    def test_json_serializer_output(self):
        """Test the default serializer writes compact, key-sorted JSON"""
        data = qfs.JSON_SERIALIZER.serialize({'b': 1, 'a': [2]})
        assert data == b'{"a":[2],"b":1}'
        assert qfs.JSON_SERIALIZER.deserialize(data) == {'b': 1, 'a': [2]}

    def test_none_value(self):
        """Test None is rejected"""
        with pytest.raises(qfs.ValidationError, match="None"):
            qfs.split_value(None, 2)

    def test_chunk_count_below_minimum(self):
        """Test the value path enforces the same minimum"""
        with pytest.raises(qfs.ValidationError):
            qfs.split_value({'a': 1}, 1)

    def test_unserializable_value(self):
        """Test serializer failures become EncodingError"""
        with pytest.raises(qfs.EncodingError, match="Serialization failed"):
            qfs.split_value({1, 2, 3}, 2)

    def test_join_empty_data(self):
        """Test joining only empty ranges is an encoding error"""
        with pytest.raises(qfs.EncodingError, match="No data"):
            qfs.join_value([b'', b''])

    def test_join_malformed_data(self):
        """Test a deserializer rejection becomes EncodingError"""
        parts = qfs.split_value({'key': 'value'}, 3)
        parts[0] = b'\xff' + parts[0][1:]

        with pytest.raises(qfs.EncodingError, match="Deserialization failed"):
            qfs.join_value(parts)

    def test_corruption_can_go_unnoticed(self):
        """Test there is no integrity check: valid-looking damage is accepted"""
        parts = qfs.split_value({'amount': 12345}, 2)
        joined = qfs.join_bytes(parts)
        damaged = joined.replace(b'12345', b'92345')

        assert json.loads(damaged) == {'amount': 92345}
        assert qfs.join_value(qfs.split_bytes(damaged, 2)) == {'amount': 92345}

    def test_errors_are_value_errors(self):
        """Test generic path errors can be caught as ValueError"""
        with pytest.raises(ValueError):
            qfs.split_bytes(b'abc', 0)
        with pytest.raises(ValueError):
            qfs.join_value([b'not json'])
