class EditorError(Exception):
    """
    Base class for every error the editor reports to the user.
    """
    user_message = "Something went wrong."


class MissingSourceError(EditorError):
    user_message = "No image to process."


class UnsupportedFormatError(EditorError):
    user_message = "This file cannot be opened."


class DecodeError(EditorError):
    user_message = "Error reading the image file. Please try again."


class EncodeError(EditorError):
    user_message = "Error saving the image. Please try again."


class BackendUnavailableError(EditorError):
    user_message = "The image processing backend is not available."


class ProcessingError(EditorError):
    """
    A backend primitive failed while running a pipeline stage.
    stage: name of the stage that failed (e.g. 'blur').
    """
    user_message = "Error processing image. Please try again."

    def __init__(self, stage, message=None):
        self.stage = stage
        super().__init__(message or f"Stage '{stage}' failed")


def user_message(error):
    """
    Returns the text shown to the user for an error.
    Upload validation errors carry their own message; other kinds use
    the generic text of their class.
    """
    if isinstance(error, UnsupportedFormatError) and error.args:
        return str(error.args[0])
    if isinstance(error, EditorError):
        return error.user_message
    return EditorError.user_message
