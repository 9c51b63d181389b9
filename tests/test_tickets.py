"""
Tests for the iCalendar ticket.
"""

from datetime import datetime

from app.services.tickets import build_ics


def test_ics_event_fields():
    start = datetime(2030, 5, 1, 19, 30)
    ics = build_ics("Film, Part 2; Redux", start, description="Seats: A1, A2", location="Cinema", now=datetime(2030, 4, 1, 8, 0))

    lines = ics.split("\r\n")
    assert lines[0] == "BEGIN:VCALENDAR" and lines[-1] == "END:VCALENDAR"
    assert "DTSTART:20300501T193000Z" in lines
    assert "DTEND:20300501T213000Z" in lines
    assert "DTSTAMP:20300401T080000Z" in lines
    assert "SUMMARY:Film\\, Part 2\\; Redux" in lines
    assert "DESCRIPTION:Seats: A1\\, A2" in lines
    assert "LOCATION:Cinema" in lines
    assert any(line.startswith("UID:") for line in lines)
