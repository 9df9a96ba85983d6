"""sheetpipe - stream tabular records between a binary wire format, workbooks and JSON lines.

Three tools are chained over standard input/output:
    dirents2stream  directory entries -> record batch stream
    stream2sheet    record batch stream -> named workbook sheet
    sheet2jsonl     workbook sheet -> line-delimited JSON
"""

__version__ = "0.1.0"
