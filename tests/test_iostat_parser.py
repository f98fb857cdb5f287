"""
单元测试：zpool iostat 行解析

测试覆盖：
- 26 列整数行无损解析
- "-" 替换为 0
- 单列行返回 None
- 列数不匹配、非整数、越界、空名称
"""

import pytest

from zfs_agent.errors import IostatColumnCountError, IostatParseError
from zfs_agent.iostat.parser import (
    GAUGE_FIELDS,
    INT64_MAX,
    INT64_MIN,
    IOSTAT_COLUMNS,
    IOSTAT_FIELDS,
    parse_iostat_line,
)


class TestParseIostatLine:
    """iostat 行解析测试"""

    def test_schema_shape(self):
        """测试：schema 为 25 个字段，其中 2 个 gauge"""
        assert len(IOSTAT_FIELDS) == 25
        assert IOSTAT_COLUMNS == 26
        assert GAUGE_FIELDS == {"iostat_alloc", "iostat_free"}
        assert IOSTAT_FIELDS[0] == "iostat_alloc"
        assert IOSTAT_FIELDS[-1] == "scrubq_read_activ"

    def test_values_round_trip(self):
        """测试：每列数值原样保留"""
        values = [INT64_MAX, INT64_MIN] + [i * 1000 - 7 for i in range(23)]
        line = "\t".join(["tank"] + [str(v) for v in values])

        record = parse_iostat_line(line)

        assert record.name == "tank"
        assert [record.values[k] for k in IOSTAT_FIELDS] == values

    def test_real_output_line(self):
        """测试：真实 zpool iostat 输出"""
        line = (
            "rpool\t1834799104\t30165299200\t0\t12\t0\t170316\t-\t1237120\t-\t"
            "394336\t-\t10134\t-\t844870\t-\t0\t0\t0\t0\t0\t0\t1\t0\t0\t0"
        )

        record = parse_iostat_line(line)

        assert record.values["iostat_alloc"] == 1834799104
        assert record.values["iostat_free"] == 30165299200
        assert record.values["operations_write"] == 12
        assert record.values["bandwidth_write"] == 170316
        assert record.values["total_wait_read"] == 0
        assert record.values["total_wait_write"] == 1237120
        assert record.values["scrub_wait"] == 0
        assert record.values["asyncq_write_operations_pend"] == 1

    def test_dash_becomes_zero(self, iostat_line):
        """测试：任意位置的 "-" 按 0 处理"""
        for key in IOSTAT_FIELDS:
            columns = iostat_line("tank", **{k: 5 for k in IOSTAT_FIELDS}).split("\t")
            columns[IOSTAT_FIELDS.index(key) + 1] = "-"

            record = parse_iostat_line("\t".join(columns))

            assert record.values[key] == 0
            assert all(v == 5 for k, v in record.values.items() if k != key)

    @pytest.mark.parametrize("line", ["", "rpool", "   ", "capacity operations"])
    def test_single_column_is_skipped(self, line):
        """测试：没有 Tab 的行返回 None 而不是错误"""
        assert parse_iostat_line(line) is None

    def test_column_count_mismatch(self, iostat_line):
        """测试：列数不足"""
        line = "\t".join(iostat_line("tank").split("\t")[:10])

        with pytest.raises(IostatColumnCountError) as exc_info:
            parse_iostat_line(line)

        assert exc_info.value.line == line
        assert exc_info.value.count == 10
        assert exc_info.value.expected == 26

    def test_too_many_columns(self, iostat_line):
        """测试：列数过多"""
        with pytest.raises(IostatColumnCountError):
            parse_iostat_line(iostat_line("tank") + "\t1")

    def test_non_integer_reports_key_and_partial_record(self, iostat_line):
        """测试：非整数列报告字段名和原始值，并附带部分记录"""
        columns = iostat_line("tank", iostat_alloc=100, iostat_free=50).split("\t")
        columns[5] = "12.5"

        with pytest.raises(IostatParseError) as exc_info:
            parse_iostat_line("\t".join(columns))

        error = exc_info.value
        assert error.key == "bandwidth_read"
        assert error.value == "12.5"
        assert "bandwidth_read" in str(error)
        assert error.record.name == "tank"
        assert error.record.values["iostat_alloc"] == 100
        assert error.record.values["iostat_free"] == 50
        assert "bandwidth_read" not in error.record.values

    @pytest.mark.parametrize("raw", ["9223372036854775808", "-9223372036854775809", "1e3", " 7", "1_000", "0x10"])
    def test_rejects_invalid_int64(self, iostat_line, raw):
        """测试：越界和非十进制写法视为错误"""
        columns = iostat_line("tank").split("\t")
        columns[3] = raw

        with pytest.raises(IostatParseError) as exc_info:
            parse_iostat_line("\t".join(columns))

        assert exc_info.value.key == "operations_read"

    def test_explicit_sign(self, iostat_line):
        """测试：允许显式正负号"""
        columns = iostat_line("tank").split("\t")
        columns[3] = "+42"
        columns[4] = "-42"

        record = parse_iostat_line("\t".join(columns))

        assert record.values["operations_read"] == 42
        assert record.values["operations_write"] == -42

    def test_empty_name(self, iostat_line):
        """测试：pool 名称为空"""
        with pytest.raises(IostatParseError) as exc_info:
            parse_iostat_line(iostat_line(""))

        assert exc_info.value.key == "name"
