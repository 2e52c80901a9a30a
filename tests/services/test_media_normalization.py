from app.schemas.media import DayPicture
from app.services import candidates
from app.services.day_picture import display_source, normalize_media


def test_youtube_video_gets_thumbnail_and_video_url():
    record = normalize_media(DayPicture(
        date="2024-08-10", media_type="video", url="https://www.youtube.com/embed/abcdefghijk?rel=0",
    ))
    assert record.thumbnail_url == "https://img.youtube.com/vi/abcdefghijk/hqdefault.jpg"
    assert record.video_url == "https://www.youtube.com/embed/abcdefghijk?rel=0"
    assert display_source(record) == (record.thumbnail_url, "thumb")


def test_other_without_url_becomes_hosted_video():
    record = normalize_media(DayPicture(date="2024-08-10", media_type="other", explanation="A still."))
    assert record.media_type == "video"
    assert record.is_nasa_hosted is True
    assert record.thumbnail_url == candidates.PLACEHOLDER_THUMBNAIL
    assert record.video_url == record.url == "https://apod.nasa.gov/apod/ap240810.html"


def test_untagged_time_lapse_is_reclassified_and_keeps_url():
    record = normalize_media(DayPicture(
        date="2024-08-10", explanation="This Time-Lapse shows star trails.", url="https://apod.nasa.gov/x.mp4",
    ))
    assert record.media_type == "video"
    assert record.url == "https://apod.nasa.gov/x.mp4"
    assert record.video_url is None


def test_image_mentioning_animation_stays_an_image():
    record = normalize_media(DayPicture(
        date="2024-08-10", media_type="image", explanation="An animation of this image is also available.",
        url="https://apod.nasa.gov/apod/image/2408/a.jpg", hdurl="https://apod.nasa.gov/apod/image/2408/a_hd.png",
    ))
    assert record.media_type == "image"
    assert display_source(record) == ("https://apod.nasa.gov/apod/image/2408/a_hd.png", "full")


def test_image_without_hdurl_uses_url():
    record = DayPicture(date="2024-08-10", media_type="image", url="https://apod.nasa.gov/a.jpg")
    assert display_source(record) == ("https://apod.nasa.gov/a.jpg", "full")


def test_video_without_url_is_treated_as_hosted():
    record = normalize_media(DayPicture(date="2024-08-10", media_type="video", explanation="A NASA video."))
    assert record.media_type == "video"
    assert record.is_nasa_hosted is True
    assert record.thumbnail_url == candidates.PLACEHOLDER_THUMBNAIL
    assert record.video_url == record.url == "https://apod.nasa.gov/apod/ap240810.html"
    assert display_source(record) == (candidates.PLACEHOLDER_THUMBNAIL, "thumb")
