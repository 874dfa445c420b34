import pytest

from cashdrawer_bridge.listing import (
    PrinterInfo,
    PrinterStatus,
    parse,
    parse_default,
    parse_table,
    status_from_text,
    status_from_win32_flags,
)

SAMPLE = "Name  Default  Status\nHP LaserJet  TRUE  Idle\nVirtualPDF  FALSE  Offline"


class TestParseText:

    def test_sample_listing(self):
        assert parse(SAMPLE) == [
            PrinterInfo(name='HP LaserJet', default=True, status=PrinterStatus.IDLE),
            PrinterInfo(name='VirtualPDF', default=False, status=PrinterStatus.OFFLINE),
        ]

    def test_wmic_style_output(self):
        text = (
            "Default  Name                           Status   \r\r\n"
            "FALSE    Microsoft Print to PDF         Unknown  \r\r\n"
            "TRUE     EPSON TM-T20II Receipt         OK       \r\r\n"
            "\r\r\n"
        )
        printers = parse(text)
        assert [p.name for p in printers] == ['Microsoft Print to PDF', 'EPSON TM-T20II Receipt']
        assert [p.default for p in printers] == [False, True]
        assert [p.status for p in printers] == [PrinterStatus.UNKNOWN, PrinterStatus.OK]

    def test_format_table_rule_is_skipped(self):
        rows = parse_table("Name    Default    Status\n----    -------    ------\nReceipt    TRUE    Idle")
        assert rows == [{'name': 'Receipt', 'default': 'TRUE', 'status': 'Idle'}]

    def test_tab_separated(self):
        printers = parse("Name\tDefault\tStatus\nReceipt\tTRUE\tIdle")
        assert printers == [PrinterInfo(name='Receipt', default=True, status=PrinterStatus.IDLE)]

    def test_unknown_status(self):
        printers = parse("Name  Default  Status\nKitchen  FALSE  Paused")
        assert printers[0].status is PrinterStatus.UNKNOWN

    def test_short_row_fills_none(self):
        printers = parse("Name  Default  Status\nLonely")
        assert printers == [PrinterInfo(name='Lonely', default=False, status=PrinterStatus.UNKNOWN)]

    def test_short_row_keeps_following_rows(self):
        printers = parse("Name  Default  Status\nLonely\nReceipt  TRUE  Idle")
        assert [p.name for p in printers] == ['Lonely', 'Receipt']
        assert printers[1].default is True

    def test_extra_cells_are_dropped(self):
        rows = parse_table("Name  Status\nA  Idle  surplus")
        assert rows == [{'name': 'A', 'status': 'Idle'}]

    def test_default_is_case_sensitive(self):
        printers = parse("Name  Default  Status\nA  true  Idle\nB  TRUE  Idle")
        assert [p.default for p in printers] == [False, True]

    @pytest.mark.parametrize('raw', ['', '   \n\n  ', None, b''])
    def test_empty_payload(self, raw):
        assert parse(raw) == []

    def test_header_only(self):
        assert parse("Name  Default  Status\n") == []

    def test_bytes_payload(self):
        assert parse(SAMPLE.encode())[0].name == 'HP LaserJet'

    def test_order_preserved(self):
        text = "Name  Status\nZ  Idle\nA  Idle\nM  Idle"
        assert [p.name for p in parse(text)] == ['Z', 'A', 'M']


class TestParseStructured:

    def test_records(self):
        printers = parse([
            {'name': 'Receipt', 'default': True, 'status': PrinterStatus.OK},
            {'Name': 'Kitchen', 'Default': 'FALSE', 'Status': 'offline'},
        ])
        assert printers == [
            PrinterInfo(name='Receipt', default=True, status=PrinterStatus.OK),
            PrinterInfo(name='Kitchen', default=False, status=PrinterStatus.OFFLINE),
        ]

    def test_missing_name_is_none(self):
        assert parse([{'status': 'idle'}]) == [PrinterInfo(name=None, status=PrinterStatus.IDLE)]
        assert parse([{'name': '  '}])[0].name is None

    def test_raw_status_never_leaks(self):
        printers = parse([{'name': 'A', 'status': 'Toner low'}, {'name': 'B', 'status': 42}])
        assert all(p.status is PrinterStatus.UNKNOWN for p in printers)

    def test_printer_info_passthrough(self):
        info = PrinterInfo(name='A', default=True, status=PrinterStatus.IDLE)
        assert parse([info]) == [info]

    def test_unrecognized_entry_yields_placeholder(self):
        assert parse(['garbage']) == [PrinterInfo(name=None)]


class TestStatusMapping:

    @pytest.mark.parametrize('raw, expected', [
        ('OK', PrinterStatus.OK),
        ('Printing', PrinterStatus.OK),
        ('IDLE', PrinterStatus.IDLE),
        (' idle ', PrinterStatus.IDLE),
        ('Offline', PrinterStatus.OFFLINE),
        ('Stopped Printing', PrinterStatus.OFFLINE),
        ('Paused', PrinterStatus.UNKNOWN),
        ('', PrinterStatus.UNKNOWN),
        (None, PrinterStatus.UNKNOWN),
    ])
    def test_text(self, raw, expected):
        assert status_from_text(raw) is expected

    @pytest.mark.parametrize('flags, expected', [
        (0, PrinterStatus.OK),
        (0x80, PrinterStatus.OFFLINE),
        (0x81, PrinterStatus.OFFLINE),
        (0x01, PrinterStatus.IDLE),
        (0x02, PrinterStatus.UNKNOWN),
    ])
    def test_win32(self, flags, expected):
        assert status_from_win32_flags(flags) is expected

    def test_default_flag(self):
        assert parse_default('TRUE') is True
        assert parse_default('FALSE') is False
        assert parse_default('True') is False
        assert parse_default(True) is True
        assert parse_default(None) is False

    def test_to_dict(self):
        info = PrinterInfo(name='A', default=True, status=PrinterStatus.IDLE)
        assert info.to_dict() == {'name': 'A', 'default': True, 'status': 'IDLE'}
