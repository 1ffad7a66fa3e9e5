from processor.app.models import StemArtifact


class FakeFetcher:
    def __init__(self, error=None, events=None):
        self.error = error
        self.events = events if events is not None else []
        self.calls = []

    def fetch(self, url, output_dir, job_id="-"):
        self.events.append("fetch")
        self.calls.append((url, output_dir))
        if self.error:
            raise self.error
        output_dir.mkdir(parents=True, exist_ok=True)
        path = output_dir / "source.m4a"
        path.write_bytes(b"audio")
        return path


class FakeSeparator:
    def __init__(self, error=None):
        self.error = error
        self.calls = []

    def separate(self, input_file, output_root, job_id="-"):
        self.calls.append((input_file, output_root))
        if self.error:
            raise self.error
        out_dir = output_root / "htdemucs_ft" / input_file.stem
        out_dir.mkdir(parents=True, exist_ok=True)
        artifacts = []
        for kind, name in (("vocals", "vocals.wav"), ("instrumental", "no_vocals.wav")):
            (out_dir / name).write_bytes(b"wav")
            artifacts.append(StemArtifact(kind=kind, local_path=out_dir / name))
        return artifacts


class FakePublisher:
    def __init__(self, error=None):
        self.error = error
        self.calls = []

    def publish(self, artifact, title, stamp, job_id="-"):
        self.calls.append((artifact.kind, title, stamp))
        if self.error:
            raise self.error
        artifact.remote_name = f"/Isolator/{title}_{stamp}_{artifact.kind}.wav"
        artifact.direct_link = f"https://www.dropbox.com/s/{artifact.kind}.wav?dl=1"
        return artifact


class FakeNotifier:
    def __init__(self, error=None):
        self.error = error
        self.posts = []

    def post(self, channel, thread_ts, message):
        self.posts.append((channel, thread_ts, message))
        if self.error:
            raise self.error
