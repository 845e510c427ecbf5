import unittest

from mappers import map_record, map_records, map_video_details, parse_thumbnails
from models import ChannelRecord, OtherRecord, VideoRecord

THUMBS = [
    {"quality": "maxres", "url": "https://x/maxres.jpg", "width": 1280, "height": 720},
    {"quality": "high", "url": "/vi/abc/hqdefault.jpg", "width": 480, "height": 360},
    {"quality": "default", "url": "https://x/d.jpg", "width": 120, "height": 90},
    {"url": "https://x/unnamed.jpg"},
]


class TestParseThumbnails(unittest.TestCase):

    def test_keyed_by_quality(self):
        tiers = parse_thumbnails(THUMBS)
        self.assertEqual(set(tiers), {"maxres", "high", "default"})
        self.assertEqual(tiers["default"].url, "https://x/d.jpg")
        self.assertEqual((tiers["maxres"].width, tiers["maxres"].height), (1280, 720))

    def test_relative_urls_made_absolute(self):
        self.assertEqual(parse_thumbnails(THUMBS)["high"].url, "https://i.ytimg.com/vi/abc/hqdefault.jpg")

    def test_accepts_keyed_mapping(self):
        tiers = parse_thumbnails({"default": {"url": "https://x/d.jpg"}, "high": {"url": "https://x/h.jpg"}})
        self.assertEqual(tiers["high"].url, "https://x/h.jpg")
        self.assertEqual(tiers["high"].quality, "high")

    def test_garbage(self):
        self.assertEqual(parse_thumbnails(None), {})
        self.assertEqual(parse_thumbnails("nope"), {})
        self.assertEqual(parse_thumbnails([1, None]), {})


class TestMapRecord(unittest.TestCase):

    def test_video(self):
        rec = map_record({
            "type": "video", "videoId": "abc", "title": "T", "author": "A", "authorId": "UCA",
            "videoThumbnails": THUMBS, "viewCountText": "1.2M views", "lengthSeconds": 212,
        })
        self.assertIsInstance(rec, VideoRecord)
        self.assertEqual(rec.viewCountText, "1.2M views")
        self.assertEqual(rec.thumbnail_url("default"), "https://x/d.jpg")
        self.assertIsNone(rec.thumbnail_url("sddefault"))

    def test_channel(self):
        rec = map_record({"type": "channel", "authorId": "UCA", "author": "A", "subCount": 12})
        self.assertIsInstance(rec, ChannelRecord)
        self.assertEqual(rec.authorUrl, "/channel/UCA")
        self.assertEqual(rec.subCount, 12)

    def test_unknown_and_broken_items_become_other(self):
        self.assertEqual(map_record({"type": "hashtag"}).type, "hashtag")
        self.assertIsInstance(map_record({"type": "video"}), OtherRecord)
        self.assertIsInstance(map_record("video"), OtherRecord)
        self.assertIsInstance(map_record({}), OtherRecord)

    def test_map_records_default_type(self):
        records = map_records([{"videoId": "v1"}], default_type="video")
        self.assertIsInstance(records[0], VideoRecord)
        self.assertEqual(map_records("not a list"), [])

    def test_video_details(self):
        d = map_video_details({
            "videoId": "abc", "title": "T", "description": "line one\nline two",
            "viewCount": "1000", "likeCount": 50, "videoThumbnails": THUMBS,
        })
        self.assertEqual(d.viewCount, 1000)
        self.assertEqual(d.likeCount, 50)
        self.assertEqual(d.lengthSeconds, 0)
        self.assertIn("default", d.thumbnails)


if __name__ == '__main__':
    unittest.main()
