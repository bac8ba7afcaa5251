import pytest

from read_later.store import ArticleStore


RSS_SAMPLE = """<?xml version="1.0" encoding="UTF-8"?>
<rss version="2.0" xmlns:dc="http://purl.org/dc/elements/1.1/">
  <channel>
    <title> Example Blog </title>
    <link>https://blog.example.com/</link>
    <description>Posts about examples</description>
    <item>
      <title>First post</title>
      <link>https://blog.example.com/first</link>
      <description>&lt;p&gt;Hello &lt;b&gt;world&lt;/b&gt;&lt;/p&gt;</description>
      <pubDate>Mon, 01 Jan 2024 10:00:00 GMT</pubDate>
      <author>alice@example.com (Alice)</author>
      <guid>first-guid</guid>
    </item>
    <item>
      <link>https://blog.example.com/second</link>
      <description>Second body</description>
      <dc:creator>Bob</dc:creator>
    </item>
  </channel>
</rss>
"""

ATOM_SAMPLE = """<?xml version="1.0" encoding="utf-8"?>
<feed xmlns="http://www.w3.org/2005/Atom">
  <title>Atom Example</title>
  <subtitle>Atom subtitle</subtitle>
  <entry>
    <title>Atom entry</title>
    <link href="https://atom.example.com/entry" rel="alternate"/>
    <id>urn:uuid:1234</id>
    <published>2024-02-01T08:30:00Z</published>
    <updated>2024-02-02T08:30:00Z</updated>
    <summary>Short summary</summary>
    <content>Full content</content>
    <author><name>Carol</name></author>
  </entry>
  <entry>
    <title>Updated only</title>
    <link href="https://atom.example.com/updated"/>
    <updated>2024-03-01T00:00:00Z</updated>
    <content>Only content</content>
  </entry>
</feed>
"""


@pytest.fixture
def store():
    """Create an initialized in-memory store."""
    store = ArticleStore("sqlite:///:memory:")
    store.init()
    yield store
    store.close()


@pytest.fixture
def rss_sample():
    return RSS_SAMPLE


@pytest.fixture
def atom_sample():
    return ATOM_SAMPLE
