"""
Pytest configuration and fixtures for all tests.

This file is automatically loaded by pytest and provides sample documents
in every supported format and a scripted LLM provider.
"""

import json
import re

import pytest

from lingoforge.core.adapters.upload import write_zip
from lingoforge.core.llm.base import LLMProvider, LLMResponse, TextDelta


SAMPLE_XLIFF = """<?xml version="1.0" encoding="UTF-8"?>
<xliff xmlns="urn:oasis:names:tc:xliff:document:1.2" version="1.2">
  <file original="App/Localizable.strings" source-language="en" target-language="de" datatype="plaintext">
    <header>
      <tool tool-id="com.apple.dt.xcode" tool-name="Xcode" tool-version="15.0" build-num="15A240d"/>
    </header>
    <body>
      <trans-unit id="hello" xml:space="preserve">
        <source>Hello</source>
        <target state="translated">Hallo</target>
        <note>Greeting on the start screen</note>
      </trans-unit>
      <!-- <trans-unit id="commented-out"> -->
      <trans-unit id="bye" xml:space="preserve">
        <source>Goodbye &amp; thanks</source>
        <note>Farewell</note>
      </trans-unit>
    </body>
  </file>
</xliff>
"""

SAMPLE_CONTENTS_JSON = json.dumps({
    "developmentRegion": "en",
    "targetLocale": "de",
    "version": "1.0",
    "project": "Demo.xcodeproj",
    "toolInfo": {"toolName": "Xcode", "toolVersion": "15.0"},
})

SIMPLE_PO = """# German translation
msgid ""
msgstr ""
"Content-Type: text/plain; charset=UTF-8\\n"
"Language: de\\n"
"Plural-Forms: nplurals=2; plural=(n != 1);\\n"

#: src/app.py:10
msgid "Open file"
msgstr ""

#. Shown in the toolbar
#, python-format
msgid "Save %(name)s"
msgstr "%(name)s speichern"

msgid "One item"
msgid_plural "%d items"
msgstr[0] ""
msgstr[1] ""

#~ msgid "Obsolete"
#~ msgstr "Veraltet"
"""

HASH_PO = """msgid ""
msgstr ""
"Content-Type: text/plain; charset=UTF-8\\n"
"Language: zh\\n"

msgid "hzSNj4"
msgstr "仪表板"

msgid "tWcRaD"
msgstr ""

msgid "YBY/lc"
msgstr ""

msgid "+hb4i3"
msgstr ""
"""

REFERENCE_PO = """msgid ""
msgstr ""
"Content-Type: text/plain; charset=UTF-8\\n"
"Language: en\\n"

msgid "hzSNj4"
msgstr "Dashboard"

msgid "tWcRaD"
msgstr "Overview of your translation projects"

msgid "YBY/lc"
msgstr "New Project"

msgid "+hb4i3"
msgstr "AI-powered translation platform"
"""

SAMPLE_VTT = """WEBVTT
Kind: captions

NOTE This note is kept as-is

intro
00:00:01.000 --> 00:00:04.000 align:start
Hello there!

00:00:05.000 --> 00:00:08.500
How are you
doing today?
"""

SAMPLE_SRT = """1
00:00:01,000 --> 00:00:04,000
Hello there!

2
00:00:05,000 --> 00:00:08,500
See you tomorrow.
"""

SAMPLE_HTML = """<!DOCTYPE html>
<html>
<head><title>Welcome page</title></head>
<body>
  <h1>Welcome</h1>
  <p>Read the <b>user guide</b> first.</p>
  <img src="logo.png" alt="Company logo">
  <script>var greeting = "not translated";</script>
</body>
</html>
"""

SAMPLE_MARKDOWN = """---
title: Guide
---

# Getting started

Install the package first.

```
pip install demo
```

- first step
- second step
"""

DOCX_XML = (
    '<?xml version="1.0" encoding="UTF-8" standalone="yes"?>'
    '<w:document xmlns:w="http://schemas.openxmlformats.org/wordprocessingml/2006/main">'
    '<w:body>'
    '<w:p><w:r><w:t>Hello </w:t></w:r><w:r><w:t xml:space="preserve">world</w:t></w:r></w:p>'
    '<w:p><w:pPr/><w:r><w:t/></w:r></w:p>'
    '<w:p><w:r><w:t>Fish &amp; chips</w:t></w:r></w:p>'
    '</w:body>'
    '</w:document>'
)


@pytest.fixture
def sample_xliff():
    return SAMPLE_XLIFF


@pytest.fixture
def contents_json():
    return SAMPLE_CONTENTS_JSON


@pytest.fixture
def xcloc_bundle():
    """Zipped xcloc bundle as uploaded from the browser."""
    return write_zip([
        ("Demo.xcloc/contents.json", SAMPLE_CONTENTS_JSON.encode('utf-8')),
        ("Demo.xcloc/Localized Contents/de.xliff", SAMPLE_XLIFF.encode('utf-8')),
        ("Demo.xcloc/Source Contents/App/en.lproj/Localizable.strings", b'"hello" = "Hello";\n'),
        ("__MACOSX/Demo.xcloc/._contents.json", b"\x00\x05\x16\x07"),
    ])


@pytest.fixture
def simple_po():
    return SIMPLE_PO


@pytest.fixture
def hash_po():
    return HASH_PO


@pytest.fixture
def reference_po():
    return REFERENCE_PO


@pytest.fixture
def sample_vtt():
    return SAMPLE_VTT


@pytest.fixture
def sample_srt():
    return SAMPLE_SRT


@pytest.fixture
def sample_html():
    return SAMPLE_HTML


@pytest.fixture
def sample_markdown():
    return SAMPLE_MARKDOWN


@pytest.fixture
def docx_bytes():
    return write_zip([
        ("[Content_Types].xml", b'<?xml version="1.0"?><Types/>'),
        ("word/document.xml", DOCX_XML.encode('utf-8')),
    ])


# ============================================================================
# Scripted LLM provider
# ============================================================================

_ENTRY_ID_RE = re.compile(r'^\[\d+\] id="([^"]*)"', re.MULTILINE)


def prompt_entry_ids(messages):
    """Entry ids listed in the user prompt of a batch."""
    user = next(m["content"] for m in messages if m["role"] == "user")
    return _ENTRY_ID_RE.findall(user)


def echo_translations(messages):
    """Turn that translates every entry of the batch to ``T:<id>``."""
    translations = [{"id": entry_id, "targetText": f"T:{entry_id}"} for entry_id in prompt_entry_ids(messages)]
    return [TextDelta(json.dumps({"translations": translations}))]


class ScriptedProvider(LLMProvider):
    """
    LLM provider replaying canned answers.

    Args:
        scan: Reply text for the terminology scan, None for "no response",
            or an exception to raise
        turns: Model turns consumed in order; each is a list of parts
            (strings become TextDelta) or an exception to raise
        on_turn: Callable(messages) used instead of ``turns``
    """

    def __init__(self, scan="[]", turns=None, on_turn=None):
        super().__init__("scripted-model", retry_delay=0)
        self.scan = scan
        self.turns = list(turns or [])
        self.on_turn = on_turn
        self.generate_calls = []
        self.stream_calls = []
        self.closed = False

    async def generate(self, prompt, timeout=60, system_prompt=None):
        self.generate_calls.append({"system": system_prompt, "user": prompt})
        if isinstance(self.scan, Exception):
            raise self.scan
        if self.scan is None:
            return None
        return LLMResponse(content=self.scan)

    async def _stream_step(self, messages, tools, timeout):
        self.stream_calls.append({"messages": list(messages), "tools": tools})
        turn = self.on_turn(messages) if self.on_turn else self.turns.pop(0)
        if isinstance(turn, Exception):
            raise turn
        for part in turn:
            yield TextDelta(part) if isinstance(part, str) else part

    async def close(self):
        self.closed = True


@pytest.fixture
def scripted_provider():
    """Factory for ScriptedProvider instances."""
    return ScriptedProvider


@pytest.fixture
def echo_provider():
    """Provider whose scan finds nothing and which translates every entry to ``T:<id>``."""
    return ScriptedProvider(scan="[]", on_turn=echo_translations)


@pytest.fixture
def echo_turn():
    """Turn callback translating every entry of a batch to ``T:<id>``."""
    return echo_translations
