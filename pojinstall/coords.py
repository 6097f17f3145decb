from .errors import ManifestError


def coordinate_to_path(coordinate: str) -> str:
    """
    Translates a ``group:artifact:version`` coordinate into its repository path,
    e.g. ``net.example:widget:1.2.3`` -> ``net/example/widget/1.2.3/widget-1.2.3.jar``.

    Classifiers and extensions (a fourth or fifth segment) are not supported.
    """
    parts = coordinate.split(':')
    if len(parts) != 3 or not all(parts):
        raise ManifestError(f"Invalid library coordinate '{coordinate}', expected group:artifact:version")
    group, artifact, version = parts
    return f"{group.replace('.', '/')}/{artifact}/{version}/{artifact}-{version}.jar"
