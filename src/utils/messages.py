from textual.message import Message


class QuitRequestedMessage(Message):
    """
    broadcasted when the app is about to quit
    """

    bubble = True


class UserLogoutMessage(Message):
    """
    broadcasted when the user signs out
    """

    bubble = True


class UserLoginMessage(Message):
    """
    Fired when the identity changed (sign in, guest, role granted),
    so gated screens re-check access
    """

    bubble = True


class CartChangedMessage(Message):
    """
    Fired after any cart mutation succeeded on the cart screen.
    Reloads the cart lines and the sidebar cart badge.

    Other screens pick up cart changes on ScreenResume instead
    """

    bubble = True
