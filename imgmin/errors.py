class ImageminError(Exception):
    pass


class CodecError(ImageminError):
    def __init__(self, codec: str, message: str, stderr: str = "") -> None:
        super().__init__(f"{codec}: {message}")
        self.codec = codec
        self.stderr = stderr
