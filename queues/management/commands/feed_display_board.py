import serial
from django.core.management.base import BaseCommand, CommandError

from queues.display import DisplayBoardFeeder, board_settings, open_port


class Command(BaseCommand):
    help = "Poll the current-number API and push frames to the waiting-room display board."

    def add_arguments(self, parser):
        parser.add_argument("doctor_id", type=int)
        parser.add_argument("--url", help="current_number API 網址")
        parser.add_argument("--port", help="序列埠，例如 COM3 或 /dev/ttyACM0")
        parser.add_argument("--baudrate", type=int)
        parser.add_argument("--interval", type=float, help="幾秒抓一次")
        parser.add_argument("--ticks", type=int, help="跑幾輪就停（測試用）")

    def handle(self, *args, **options):
        conf = board_settings(
            API_URL=options["url"],
            SERIAL_PORT=options["port"],
            BAUDRATE=options["baudrate"],
            POLL_INTERVAL=options["interval"],
        )

        self.stdout.write(f"Connect serial: {conf['SERIAL_PORT']} @ {conf['BAUDRATE']}")
        try:
            port = open_port(conf["SERIAL_PORT"], conf["BAUDRATE"])
        except serial.SerialException as exc:
            raise CommandError(f"Cannot open {conf['SERIAL_PORT']}: {exc}")

        feeder = DisplayBoardFeeder(
            options["doctor_id"],
            conf["API_URL"],
            port,
            timeout=conf["TIMEOUT"],
        )
        try:
            feeder.run(conf["POLL_INTERVAL"], max_ticks=options["ticks"])
        except KeyboardInterrupt:
            self.stdout.write("Stopped by user.")
        finally:
            port.close()
            self.stdout.write("Serial closed.")
