DEFAULT_REQUEST_HEADERS = {
    "accept": "*/*",
    "accept-language": "en-US,en;q=0.9",
    "connection": "keep-alive",
}

SEGMENT_EXTENSION = ".ts"
PLAYLIST_EXTENSIONS = (".m3u8", ".m3u")

MAIN_GROUP = "main"
BACKUP_GROUP = "bak"

# Remote segments live here, under the staging directory, apart from the group intermediates
DOWNLOAD_SUBDIR = "segments"
